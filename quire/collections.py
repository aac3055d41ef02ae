from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import datetime

from .config import SortOrder
from .content import Document


def sort_documents(
    documents: Iterable[Document], order: SortOrder = SortOrder.DATE_DESC
) -> list[Document]:
    """Sort documents into a total, reproducible order.

    Sorting order:
    - date-desc: newest first, ties by source path ascending
    - date-asc: oldest first, ties by source path ascending
    - path: source path ascending

    Undated documents count as the oldest.
    """
    # Two stable passes keep the path tie-break ascending in both date orders.
    by_path = sorted(documents, key=lambda doc: doc.source_path)
    if order is SortOrder.PATH:
        return by_path
    return sorted(
        by_path,
        key=lambda doc: doc.date or datetime.min,
        reverse=order is SortOrder.DATE_DESC,
    )


class DocumentCollection(Sequence[Document]):
    """Named, ordered, read-only sequence of Documents."""

    def __init__(self, name: str, documents: Iterable[Document]):
        self.name = name
        self._documents = tuple(documents)
        self._positions = {
            doc.source_path: index for index, doc in enumerate(self._documents)
        }

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __getitem__(self, item):
        return self._documents[item]

    def index_of(self, source_path: str) -> int | None:
        """Position of a document, looked up by source path."""
        return self._positions.get(source_path)

    def with_tag(self, tag: str) -> DocumentCollection:
        return DocumentCollection(
            f"{self.name}:{tag}", (d for d in self._documents if tag in d.tags)
        )

    def latest(self, count: int = 5) -> DocumentCollection:
        return DocumentCollection(self.name, self._documents[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"DocumentCollection({self.name!r}, {len(self._documents)} documents)"


class TagIndex(Mapping[str, DocumentCollection]):
    """Mapping of tag name to DocumentCollection, iterated in tag order."""

    def __init__(self, mapping: Mapping[str, Iterable[Document]]):
        self._mapping = {
            tag: DocumentCollection(tag, mapping[tag]) for tag in sorted(mapping)
        }

    def __getitem__(self, key: str) -> DocumentCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagIndex({len(self._mapping)} tags)"


def build_tag_index(
    documents: Iterable[Document], order: SortOrder = SortOrder.DATE_DESC
) -> TagIndex:
    """Build an index mapping tags to the documents carrying them.

    Documents without tags contribute nothing.
    """
    tags: dict[str, list[Document]] = {}
    for doc in documents:
        for tag in doc.tags:
            tags.setdefault(tag, []).append(doc)
    return TagIndex({tag: sort_documents(docs, order) for tag, docs in tags.items()})
