"""Content loading for Quire.

This module discovers Markdown documents below the source root, splits each
into front-matter and body, and builds immutable Document objects carrying a
unique output path.

Key classes:
- Document: Frozen dataclass representing one content unit.
- FileContentLoader: Discovers content files in a directory.
- OutputPathDeriver: Maps a source path plus metadata to an output path.
- DocumentBuilder: Builds a Document from one source file.
- ContentLoader: Loads every document in parallel and checks path uniqueness.

Loading is embarrassingly parallel: no document depends on another until
the uniqueness check, which runs once every file has been read.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any, Mapping

from .errors import ParseError, PathCollisionError
from .extractors import (
    CompositeMetadataExtractor,
    default_metadata_extractor,
    extract_frontmatter,
)
from .utils import is_internal_path, is_markdown, normalize_output_path, output_path_to_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Document:
    """One content unit: metadata, raw body and its place in the output tree.

    Attributes:
        source_path: Path relative to the source root in POSIX form. This is
            the document's identity.
        metadata: Front-matter exactly as parsed. The mapping itself is
            read-only; nested lists and mappings are kept as PyYAML built
            them so values round-trip unchanged, and must not be mutated.
        body: Raw body text following the front-matter.
        output_path: Path relative to the destination root.
        title: Title from metadata or the filename.
        date: Publication date, or None for undated documents.
        tags: Tags in declaration order, without duplicates.
        slug: URL-friendly name used in the output path.
    """

    source_path: str
    metadata: Mapping[str, Any] = field(compare=False, hash=False, repr=False)
    body: str = field(repr=False)
    output_path: str
    title: str
    date: datetime | None = None
    tags: tuple[str, ...] = ()
    slug: str = ""

    @property
    def group(self) -> str:
        """First folder of the source path, e.g. ``posts``; empty at the root."""
        parts = PurePosixPath(self.source_path).parts
        return parts[0] if len(parts) > 1 else ""

    @property
    def url(self) -> str:
        return output_path_to_url(self.output_path)

    @property
    def layout(self) -> str | None:
        layout = self.metadata.get("layout")
        return str(layout) if layout is not None else None

    @property
    def draft(self) -> bool:
        return bool(self.metadata.get("draft", False))


class FileContentLoader:
    """Discovers content files in a directory.

    Files and folders whose name starts with ``_`` or ``.`` are internal and
    never loaded.

    Attributes:
        source_root: Directory containing the documents.
    """

    def __init__(self, source_root: Path):
        self.source_root = source_root

    def iter_files(self) -> list[Path]:
        """Return every Markdown file below the source root, sorted by relative path."""
        files: list[Path] = []
        for path in self.source_root.rglob("*"):
            if not path.is_file():
                continue
            rel = path.relative_to(self.source_root)
            if is_internal_path(rel):
                continue
            if is_markdown(path):
                files.append(path)
        return sorted(files, key=lambda p: p.relative_to(self.source_root).as_posix())


class OutputPathDeriver:
    """Derives output paths for documents.

    Rules, first match wins:

    1. ``permalink`` metadata, used verbatim (``/about/`` -> ``about/index.html``).
    2. ``index`` files map to ``<folder>/index.html``.
    3. Dated documents map to ``<folder>/YYYY/MM/DD/<slug>/index.html``.
    4. Anything else maps to ``<folder>/<slug>/index.html``.
    """

    def derive(
        self,
        rel: PurePosixPath,
        metadata: Mapping[str, Any],
        slug: str,
        date: datetime | None,
    ) -> str:
        permalink = metadata.get("permalink")
        if permalink is not None:
            try:
                return normalize_output_path(str(permalink))
            except ValueError as exc:
                raise ParseError(rel, str(exc), exc) from exc

        segments = list(rel.parent.parts)
        if rel.stem == "index":
            return "/".join(segments + ["index.html"])
        if date is not None:
            segments += [f"{date.year:04d}", f"{date.month:02d}", f"{date.day:02d}"]
        return "/".join(segments + [slug, "index.html"])


class DocumentBuilder:
    """Builds Document objects from source files.

    Attributes:
        source_root: Directory containing the documents.
        metadata_extractor: Composite extractor deriving typed values.
        path_deriver: Output path deriver.
    """

    def __init__(
        self,
        source_root: Path,
        metadata_extractor: CompositeMetadataExtractor | None = None,
        path_deriver: OutputPathDeriver | None = None,
    ):
        self.source_root = source_root
        self.metadata_extractor = metadata_extractor or default_metadata_extractor
        self.path_deriver = path_deriver or OutputPathDeriver()

    def build(self, path: Path) -> Document:
        """Build a Document from a source file.

        Raises:
            ParseError: If the file cannot be read or its front-matter is
                malformed.
        """
        rel = PurePosixPath(path.relative_to(self.source_root).as_posix())
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ParseError(rel, f"could not read file: {exc}", exc) from exc

        metadata, body = extract_frontmatter(raw, rel)
        derived = self.metadata_extractor.extract(metadata, Path(rel))
        output_path = self.path_deriver.derive(
            rel, metadata, derived["slug"], derived["date"]
        )
        return Document(
            source_path=str(rel),
            metadata=MappingProxyType(metadata),
            body=body,
            output_path=output_path,
            title=derived["title"],
            date=derived["date"],
            tags=derived["tags"],
            slug=derived["slug"],
        )


@dataclass
class LoadResult:
    """Outcome of the load phase.

    Attributes:
        documents: Loaded documents sorted by source path.
        warnings: Per-document parse errors; those files were skipped.
        skipped_drafts: Source paths of drafts left out of the run.
    """

    documents: list[Document]
    warnings: list[ParseError] = field(default_factory=list)
    skipped_drafts: list[str] = field(default_factory=list)


def ensure_unique_output_paths(entries: Iterable[tuple[str, str]]) -> None:
    """Check that no two entries share an output path.

    Args:
        entries: Pairs of (source identity, output path).

    Raises:
        PathCollisionError: For the first contested output path in sorted
            order, listing every source that produces it.
    """
    owners: dict[str, list[str]] = {}
    for source, output_path in entries:
        owners.setdefault(output_path, []).append(source)
    collisions = sorted(path for path, sources in owners.items() if len(sources) > 1)
    if collisions:
        first = collisions[0]
        for extra in collisions[1:]:
            logger.error(
                "Output path %s is also contested by %s",
                extra,
                ", ".join(sorted(owners[extra])),
            )
        raise PathCollisionError(first, owners[first])


class ContentLoader:
    """Loads every document below the source root.

    Attributes:
        source_root: Directory containing the documents.
        workers: Size of the thread pool reading files.
        include_drafts: Whether ``draft: true`` documents are kept.
    """

    def __init__(
        self,
        source_root: Path,
        workers: int = 1,
        include_drafts: bool = False,
        file_loader: FileContentLoader | None = None,
        document_builder: DocumentBuilder | None = None,
    ):
        self.source_root = source_root
        self.workers = workers
        self.include_drafts = include_drafts
        self._file_loader = file_loader or FileContentLoader(source_root)
        self._builder = document_builder or DocumentBuilder(source_root)

    def _load_one(self, path: Path) -> Document | ParseError:
        try:
            return self._builder.build(path)
        except ParseError as exc:
            return exc

    def load(self) -> LoadResult:
        """Load all documents.

        Malformed files are skipped and reported as warnings.

        Returns:
            LoadResult with documents sorted by source path.

        Raises:
            PathCollisionError: If two documents map to the same output path.
        """
        paths = self._file_loader.iter_files()
        logger.debug("Discovered %d content files in %s", len(paths), self.source_root)

        result = LoadResult(documents=[])
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            for outcome in executor.map(self._load_one, paths):
                if isinstance(outcome, ParseError):
                    logger.warning("Skipping %s", outcome)
                    result.warnings.append(outcome)
                elif outcome.draft and not self.include_drafts:
                    logger.debug("Skipping draft %s", outcome.source_path)
                    result.skipped_drafts.append(outcome.source_path)
                else:
                    result.documents.append(outcome)

        result.documents.sort(key=lambda doc: doc.source_path)
        ensure_unique_output_paths(
            (doc.source_path, doc.output_path) for doc in result.documents
        )
        logger.info("Loaded %d documents", len(result.documents))
        return result
