"""Front-matter parsing and metadata extractors for Quire.

Front-matter is a YAML mapping between two ``---`` lines at the very top of
a document. The parsed mapping is kept exactly as YAML produced it; the
extractors below only derive typed values (title, date, tags, slug) from it
and never rewrite the mapping itself.

Key functions and classes:
- extract_frontmatter: Split a document into metadata and body.
- TitleExtractor, DateExtractor, TagExtractor, SlugExtractor: Derive one
  typed value each.
- CompositeMetadataExtractor: Runs every extractor and merges the results.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ParseError
from .protocols import MetadataExtractor
from .utils import coerce_date, extract_date_from_name, slugify, titleize

FRONTMATTER_DELIMITER = "---"
_CLOSING_DELIMITERS = ("---", "...")


def extract_frontmatter(text: str, path: Path | str) -> tuple[dict[str, Any], str]:
    """Extract YAML front-matter from content.

    Args:
        text: Raw file content.
        path: Source path, used for error context.

    Returns:
        Tuple of (front-matter dict, remaining body).

    Raises:
        ParseError: If the block is unterminated, is not valid YAML, or is
            not a mapping with string keys.
    """
    text = text.lstrip("\ufeff")
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != FRONTMATTER_DELIMITER:
        return {}, text

    for index, line in enumerate(lines[1:], start=1):
        if line.rstrip() in _CLOSING_DELIMITERS:
            header = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            break
    else:
        raise ParseError(path, "unterminated front-matter block (missing closing '---')")

    try:
        data = yaml.safe_load(header)
    except (yaml.YAMLError, ValueError) as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" on line {mark.line + 2}" if mark is not None else ""
        raise ParseError(path, f"invalid front-matter YAML{where}", exc) from exc

    if data is None:
        return {}, body
    if not isinstance(data, dict):
        raise ParseError(
            path, f"front-matter must be a mapping, got {type(data).__name__}"
        )
    bad_keys = [key for key in data if not isinstance(key, str)]
    if bad_keys:
        raise ParseError(path, f"front-matter keys must be strings: {bad_keys!r}")
    return data, body


class TitleExtractor:
    """Uses the ``title`` field, falling back to the titleized filename."""

    def extract(self, metadata: Mapping[str, Any], path: Path) -> dict[str, Any]:
        title = metadata.get("title")
        if title is None:
            return {"title": titleize(path.name)}
        return {"title": str(title)}


class DateExtractor:
    """Extracts the publication date.

    Looks for a ``date`` field first, then a YYYY-MM-DD filename prefix.
    Documents with neither are undated.
    """

    def extract(self, metadata: Mapping[str, Any], path: Path) -> dict[str, Any]:
        """Extract the date.

        Args:
            metadata: Parsed front-matter.
            path: Path to the source file.

        Returns:
            Dictionary with a 'date' key holding a datetime or None.

        Raises:
            ParseError: If the ``date`` field cannot be read as a date.
        """
        value = metadata.get("date")
        if value is None:
            return {"date": extract_date_from_name(path.stem)}
        try:
            return {"date": coerce_date(value)}
        except ValueError as exc:
            raise ParseError(path, f"invalid date {value!r}", exc) from exc


class TagExtractor:
    """Reads the ``tags`` field.

    A single string is one tag; a missing field means no tags. Duplicates
    are dropped, first occurrence wins.
    """

    def extract(self, metadata: Mapping[str, Any], path: Path) -> dict[str, Any]:
        value = metadata.get("tags")
        if value is None:
            return {"tags": ()}
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ParseError(path, f"tags must be a list of strings, got {value!r}")
        tags: list[str] = []
        for tag in value:
            if not isinstance(tag, str) or not tag.strip():
                raise ParseError(path, f"invalid tag {tag!r}")
            tag = tag.strip()
            if tag not in tags:
                tags.append(tag)
        return {"tags": tuple(tags)}


class SlugExtractor:
    """Uses the ``slug`` field, falling back to the slugified filename."""

    def extract(self, metadata: Mapping[str, Any], path: Path) -> dict[str, Any]:
        value = metadata.get("slug")
        if value is None:
            return {"slug": slugify(path.stem)}
        return {"slug": slugify(str(value), strip_date=False)}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    Runs every registered extractor over the parsed front-matter and merges
    their results; later extractors override earlier ones.
    """

    def __init__(self, extractors: list[MetadataExtractor] | None = None):
        if extractors is None:
            self._extractors = [
                TitleExtractor(),
                DateExtractor(),
                TagExtractor(),
                SlugExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor: MetadataExtractor) -> None:
        """Add an extractor to the composite."""
        self._extractors.append(extractor)

    def extract(self, metadata: Mapping[str, Any], path: Path) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(metadata, path))
        return result


default_metadata_extractor = CompositeMetadataExtractor()
