"""Quire static site generator.

Quire turns a tree of Markdown documents with YAML front-matter into a tree
of HTML pages rendered through Jinja2 layouts.

A run flows one way through four stages:
- Loader (content): discover documents and parse their front-matter.
- Builder (site, collections): order documents and index their tags.
- Renderer (renderers, templates): Markdown to HTML, then into a layout.
- Writer (writer): write the output tree, reporting per-file failures.

The main entry point is the CLI module; ``build.generate`` runs a build
programmatically.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
