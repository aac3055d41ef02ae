"""The Site aggregate and the graph builder that produces it.

A Site is built once per run, after every document has been loaded, and is
read-only from then on. Renderers receive it explicitly; there is no global
instance.

Cross-document links (previous/next) are resolved by looking a document's
source path up in a named collection, so documents never point at each
other.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from .collections import DocumentCollection, TagIndex, build_tag_index, sort_documents
from .config import SortOrder
from .content import Document

logger = logging.getLogger(__name__)

ALL_COLLECTION = "all"


@dataclass(frozen=True)
class Site:
    """Aggregate root for one generation run.

    Attributes:
        documents: Every document, ordered by source path.
        collections: Named collections; ``all`` plus one per group.
        tags: Tag index.
        order: Ordering applied to the collections.
    """

    documents: tuple[Document, ...]
    collections: Mapping[str, DocumentCollection]
    tags: TagIndex
    order: SortOrder = SortOrder.DATE_DESC

    def collection(self, name: str = ALL_COLLECTION) -> DocumentCollection:
        return self.collections[name]

    def get(self, source_path: str) -> Document | None:
        """Look a document up by its source path."""
        index = self.collections[ALL_COLLECTION].index_of(source_path)
        if index is None:
            return None
        return self.collections[ALL_COLLECTION][index]

    def _neighbour(
        self, document: Document, collection: str, step: int
    ) -> Document | None:
        items = self.collections.get(collection)
        if items is None:
            return None
        index = items.index_of(document.source_path)
        if index is None:
            return None
        target = index + step
        if 0 <= target < len(items):
            return items[target]
        return None

    def previous(
        self, document: Document, collection: str = ALL_COLLECTION
    ) -> Document | None:
        """Document before ``document`` in the collection's order."""
        return self._neighbour(document, collection, -1)

    def next(
        self, document: Document, collection: str = ALL_COLLECTION
    ) -> Document | None:
        """Document after ``document`` in the collection's order."""
        return self._neighbour(document, collection, 1)


def build_site(
    documents: Iterable[Document], order: SortOrder = SortOrder.DATE_DESC
) -> Site:
    """Aggregate documents into collections and a tag index.

    Missing metadata never fails here: undated documents sort as the oldest,
    untagged documents are absent from the tag index, and documents at the
    source root belong to no group.

    Args:
        documents: Every loaded document.
        order: Ordering for all collections.

    Returns:
        The Site for this run.
    """
    by_path = tuple(sorted(documents, key=lambda doc: doc.source_path))

    groups: dict[str, list[Document]] = {}
    for doc in by_path:
        if doc.group:
            groups.setdefault(doc.group, []).append(doc)

    collections = {
        ALL_COLLECTION: DocumentCollection(ALL_COLLECTION, sort_documents(by_path, order))
    }
    for name in sorted(groups):
        if name == ALL_COLLECTION:
            logger.warning(
                "Folder %r shadows the built-in %r collection; it is not exposed as a group",
                name,
                ALL_COLLECTION,
            )
            continue
        collections[name] = DocumentCollection(name, sort_documents(groups[name], order))

    tags = build_tag_index(by_path, order)
    logger.debug(
        "Built site graph: %d documents, %d collections, %d tags",
        len(by_path),
        len(collections),
        len(tags),
    )
    return Site(
        documents=by_path,
        collections=MappingProxyType(collections),
        tags=tags,
        order=order,
    )
