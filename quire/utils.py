"""Utility functions for Quire.

String processing, path handling and date parsing shared by the loader,
the builder and the renderer.

Key functions:
    slugify: Convert filenames and tags to URL slugs.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract a date from a filename prefix.
    coerce_date: Normalise a front-matter date value to a datetime.
    is_markdown: Check if a path is a Markdown file.
    is_internal_path: Check if a relative path is hidden from discovery.
    normalize_output_path: Turn a permalink into a relative output file path.
    escape_html: Escape special HTML characters.
    join_root_url: Join a base URL with a path.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from pathlib import Path, PurePosixPath

MARKDOWN_SUFFIXES = (".md", ".markdown")

_DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:-|$)")


def strip_date_prefix(name: str) -> str:
    """Remove a leading YYYY-MM-DD- prefix from a filename stem."""
    parts = name.split("-")
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        return "-".join(parts[3:])
    return name


def slugify(name: str, strip_date: bool = True) -> str:
    """Convert filename (without extension) to slug, dropping date prefix.

    Args:
        name: Filename stem or free text such as a tag.
        strip_date: Drop a leading YYYY-MM-DD- prefix. Only filenames carry
            one; explicit slugs and tags are taken as written.

    Returns:
        URL-friendly slug.
    """
    cleaned = strip_date_prefix(name) if strip_date else name
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    base = strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime object if a valid date prefix is found, None otherwise.
    """
    match = _DATE_PREFIX_RE.match(name)
    if not match:
        return None
    try:
        return datetime(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def coerce_date(value: object) -> datetime:
    """Normalise a front-matter date to a naive datetime.

    YAML already turns unquoted ISO dates into ``date``/``datetime``
    objects; quoted strings are parsed with ``datetime.fromisoformat``.
    Timezone-aware values are converted to UTC and made naive so that all
    documents compare against each other.

    Raises:
        ValueError: If the value is not a recognisable date.
    """
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime.combine(value, time())
    elif isinstance(value, str):
        result = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"unsupported date value {value!r}")
    if result.tzinfo is not None:
        result = result.astimezone(timezone.utc).replace(tzinfo=None)
    return result


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file (case-insensitive suffix)."""
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_internal_path(path: Path) -> bool:
    """Check if a path is internal (contains components starting with _ or .).

    Internal paths hold partials, drafts folders and editor files and are
    never treated as documents.
    """
    return any(part.startswith(("_", ".")) for part in path.parts)


def normalize_output_path(permalink: str) -> str:
    """Turn a permalink into a relative output file path.

    A trailing slash or a suffix-less last segment maps to ``index.html``
    inside that directory.

    Examples:
        >>> normalize_output_path("/about/")
        'about/index.html'
        >>> normalize_output_path("feeds/atom.xml")
        'feeds/atom.xml'

    Raises:
        ValueError: If the permalink escapes the destination root.
    """
    trailing = permalink.endswith("/")
    parts = [p for p in PurePosixPath(permalink.strip()).parts if p not in ("/", ".")]
    if ".." in parts:
        raise ValueError(f"permalink {permalink!r} escapes the destination root")
    if not parts:
        return "index.html"
    if trailing or not PurePosixPath(parts[-1]).suffix:
        parts.append("index.html")
    return "/".join(parts)


def output_path_to_url(output_path: str) -> str:
    """Map a relative output path to the URL it is served under.

    Examples:
        >>> output_path_to_url("posts/hello/index.html")
        '/posts/hello/'
    """
    if output_path == "index.html":
        return "/"
    if output_path.endswith("/index.html"):
        return "/" + output_path[: -len("index.html")]
    return "/" + output_path


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Examples:
        >>> escape_html('Tom & Jerry')
        'Tom &amp; Jerry'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Examples:
        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"
