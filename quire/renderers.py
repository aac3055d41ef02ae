"""Markdown rendering for Quire.

First stage of the render pipeline: turn a document body into HTML. The
second stage, layout substitution, lives in ``templates``.

Key classes:
- Heading: A heading collected for the table of contents.
- RenderedBody: HTML plus the headings found while rendering.
- MarkdownRenderer: Renders Markdown to HTML with syntax highlighting.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import mistune
from markupsafe import Markup
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .utils import escape_html

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]

_TAG_RE = re.compile(r"<[^>]+>")


@dataclass(frozen=True)
class Heading:
    """A heading extracted from rendered content for TOC generation.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: The plain text of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass(frozen=True)
class RenderedBody:
    html: str
    headings: list[Heading] = field(default_factory=list)


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text."""
    slug = _TAG_RE.sub("", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-") or "section"


class _HighlightRenderer(mistune.HTMLRenderer):
    """Mistune renderer adding heading anchors and Pygments highlighting.

    One instance renders exactly one document, so heading id bookkeeping is
    never shared between concurrent renders.
    """

    def __init__(self):
        super().__init__(escape=False)
        self.headings: list[Heading] = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        plain = _TAG_RE.sub("", text)
        self.headings.append(Heading(id=heading_id, text=plain, level=level))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block, highlighted when the language is known."""
        lang = info.split()[0] if info and info.strip() else None
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML.

    Tables, strikethrough, footnotes and bare URLs are enabled; raw HTML in
    the source passes through unchanged.
    """

    @property
    def source_type(self) -> str:
        return "markdown"

    def render(self, content: str) -> RenderedBody:
        """Render Markdown source.

        Args:
            content: Markdown source.

        Returns:
            RenderedBody with the HTML and the headings in document order.
        """
        renderer = _HighlightRenderer()
        markdown = mistune.create_markdown(renderer=renderer, plugins=MARKDOWN_PLUGINS)
        html = markdown(content)
        return RenderedBody(html=html, headings=list(renderer.headings))


def pygments_css(style: str = "default") -> Markup:
    """CSS rules for the ``.highlight`` class produced by code blocks."""
    return Markup(HtmlFormatter(style=style).get_style_defs(".highlight"))
