"""Protocol definitions for Quire.

Interfaces that pluggable pieces of the load phase implement, so callers
can supply their own without subclassing.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import Any, Mapping, Protocol, runtime_checkable


@runtime_checkable
class MetadataExtractor(Protocol):
    """Protocol for deriving typed values from parsed front-matter.

    Each implementation derives one kind of value (title, date, tags, ...)
    and must not modify the mapping it is given.
    """

    @abstractmethod
    def extract(self, metadata: Mapping[str, Any], path: Path) -> dict[str, Any]:
        """Derive values from front-matter.

        Args:
            metadata: Parsed front-matter mapping.
            path: Source path relative to the source root.

        Returns:
            Dictionary of derived values.

        Raises:
            ParseError: If a value is present but unusable.
        """
        ...
