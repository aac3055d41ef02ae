"""Template rendering engine for Quire.

Second stage of the render pipeline: substitute a document's metadata and
rendered body into a Jinja2 layout. Placeholders are strict. A name that is
neither defined nor given a default (``{{ subtitle | default("") }}``)
aborts the run with RenderError instead of emitting an empty string.

Key items:
- render_toc: Nested list markup for a document's headings.
- TemplateEngine: Renders documents and tag pages against the Site.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
    select_autoescape,
)
from markupsafe import Markup

from .config import BuildConfig
from .content import Document
from .errors import RenderError
from .renderers import Heading, MarkdownRenderer, pygments_css
from .site import Site
from .utils import escape_html, join_root_url

__all__ = ["DEFAULT_LAYOUT", "TAG_LAYOUT", "TemplateEngine", "render_toc"]

DEFAULT_LAYOUT = "default"
TAG_LAYOUT = "tag"
LAYOUT_SUFFIX = ".html"


def render_toc(headings: list[Heading]) -> Markup:
    """Render a table of contents as nested HTML from headings.

    Generates properly nested ``<ul><li><a href="#id">text</a></li></ul>``
    structure based on heading levels.

    Returns:
        Markup-safe HTML string of the nested TOC, or empty Markup if no headings.
    """
    if not headings:
        return Markup("")

    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        elif not level_stack or level > level_stack[-1]:  # pragma: no branch
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            f'<li><a href="#{escape_html(heading.id)}">{escape_html(heading.text)}</a>'
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


def _format_error_message(exc: Exception) -> str:
    """Format a template failure into a user-friendly message."""
    if isinstance(exc, UndefinedError):
        return f"undefined placeholder: {exc.message}"
    if isinstance(exc, TemplateSyntaxError):
        where = f"{exc.name or 'template'} line {exc.lineno}"
        return f"template syntax error in {where}: {exc.message}"
    if isinstance(exc, TemplateNotFound):
        return f"template not found: {exc.name}"
    return f"{type(exc).__name__}: {exc}"


class TemplateEngine:
    """Template rendering engine using Jinja2.

    The engine holds no per-document state, so one instance serves every
    worker of the render pool.

    Attributes:
        template_dir: Directory containing layouts.
        config: Build configuration exposed to templates as ``config``.
        env: Jinja2 environment.
        markdown: Body renderer.
    """

    def __init__(
        self,
        template_dir: Path,
        config: BuildConfig | None = None,
        markdown: MarkdownRenderer | None = None,
    ):
        self.template_dir = template_dir
        self.config = config
        self.markdown = markdown or MarkdownRenderer()
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["url_for"] = self._url_for
        self.env.globals["pygments_css"] = pygments_css
        self.env.globals["render_toc"] = render_toc

    def _url_for(self, path: str) -> str:
        """Generate a URL for a path, applying site_url if configured."""
        if path.startswith(("http://", "https://", "//")):
            return path
        path = path if path.startswith("/") else f"/{path}"
        base = self.config.site_url if self.config else ""
        return join_root_url(base, path) if base else path

    def has_layout(self, name: str) -> bool:
        return (self.template_dir / f"{name}{LAYOUT_SUFFIX}").is_file()

    def _base_context(self, site: Site) -> dict[str, Any]:
        return {
            "site": site,
            "config": self.config.as_template_context() if self.config else {},
        }

    def render_document(self, document: Document, site: Site) -> str:
        """Render a document: Markdown to HTML, then into its layout.

        Every metadata field is a top-level placeholder. ``content``,
        ``document``, ``site``, ``previous``, ``next``, ``toc``, ``headings``,
        ``config`` and the derived ``title``, ``date``, ``tags``, ``slug`` and
        ``url`` take precedence over metadata of the same name.

        Raises:
            RenderError: On an undefined placeholder, a missing layout or an
                invalid template.
        """
        body = self.markdown.render(document.body)
        context: dict[str, Any] = dict(document.metadata)
        context.update(self._base_context(site))
        context.update(
            {
                "content": Markup(body.html),
                "document": document,
                "previous": site.previous(document),
                "next": site.next(document),
                "toc": render_toc(body.headings),
                "headings": body.headings,
                "title": document.title,
                "date": document.date,
                "tags": list(document.tags),
                "slug": document.slug,
                "url": document.url,
            }
        )
        layout = document.layout
        if layout is None and not self.has_layout(DEFAULT_LAYOUT):
            return body.html
        return self._render_layout(layout or DEFAULT_LAYOUT, context, document.source_path)

    def render_tag_page(self, tag: str, documents: Iterable[Document], site: Site) -> str:
        """Render the listing page for one tag with the ``tag`` layout.

        Raises:
            RenderError: As for render_document.
        """
        context = self._base_context(site)
        context.update({"tag": tag, "documents": list(documents)})
        return self._render_layout(TAG_LAYOUT, context, f"{TAG_LAYOUT}{LAYOUT_SUFFIX}")

    def _render_layout(self, layout: str, context: dict[str, Any], source: str) -> str:
        name = layout if layout.endswith(LAYOUT_SUFFIX) else f"{layout}{LAYOUT_SUFFIX}"
        try:
            template = self.env.get_template(name)
        except TemplateNotFound as exc:
            raise RenderError(
                source, f"layout {layout!r} not found in {self.template_dir}", exc
            ) from exc
        except TemplateError as exc:
            raise RenderError(source, _format_error_message(exc), exc) from exc
        try:
            return template.render(context)
        except Exception as exc:
            # any failure inside a layout is a broken template
            raise RenderError(source, _format_error_message(exc), exc) from exc

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        """Render a template string with the engine's environment.

        Raises:
            RenderError: If the string is invalid or references undefined names.
        """
        try:
            return self.env.from_string(template).render(context)
        except Exception as exc:
            raise RenderError(None, _format_error_message(exc), exc) from exc
