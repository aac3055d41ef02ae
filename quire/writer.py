"""Output writing for Quire.

Writes rendered text to the destination tree. Each file is independent:
failures are collected per file and reported together at the end of the
run, and one failure never stops the remaining writes.

Files are encoded as UTF-8 and written as bytes, and a file whose current
content already matches is left untouched, so rebuilding unchanged input
leaves the tree byte-identical.

Key items:
- WriteReport: What happened to each output path.
- OutputWriter: Writes, prunes and marks the destination tree.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from .errors import WriteError

logger = logging.getLogger(__name__)

INCOMPLETE_MARKER = ".quire-incomplete"


@dataclass
class WriteReport:
    """Outcome of the write phase.

    Attributes:
        written: Output paths whose content changed and was written.
        unchanged: Output paths that already held identical bytes.
        removed: Stale output paths deleted from the destination.
        errors: Per-file failures.
    """

    written: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    errors: list[WriteError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class OutputWriter:
    """Writes rendered output under a destination root.

    Attributes:
        destination_root: Root of the output tree.
        workers: Size of the thread pool issuing writes.
    """

    def __init__(self, destination_root: Path, workers: int = 1):
        self.destination_root = destination_root
        self.workers = workers

    def target_for(self, output_path: str) -> Path:
        """Absolute path for a relative output path.

        Raises:
            ValueError: If the output path is absolute or escapes the root.
        """
        rel = PurePosixPath(output_path)
        if rel.is_absolute() or ".." in rel.parts or not rel.parts:
            raise ValueError(f"invalid output path {output_path!r}")
        return self.destination_root.joinpath(*rel.parts)

    def write_one(self, output_path: str, text: str) -> bool:
        """Write one file, creating intermediate directories.

        Returns:
            True if the file was written, False if it already held the same bytes.

        Raises:
            OSError: If the file cannot be written.
        """
        target = self.target_for(output_path)
        data = text.encode("utf-8")
        if target.is_file() and target.read_bytes() == data:
            return False
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return True

    def _write_entry(self, entry: tuple[str, str]) -> bool | WriteError:
        output_path, text = entry
        try:
            return self.write_one(output_path, text)
        except (OSError, ValueError) as exc:
            return WriteError(output_path, exc)

    def write_all(self, outputs: Mapping[str, str]) -> WriteReport:
        """Write every output, in sorted path order for reporting.

        Args:
            outputs: Mapping of relative output path to text.

        Returns:
            WriteReport covering every path.
        """
        report = WriteReport()
        entries = sorted(outputs.items())
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            for (output_path, _), outcome in zip(
                entries, executor.map(self._write_entry, entries)
            ):
                if isinstance(outcome, WriteError):
                    logger.error("%s", outcome)
                    report.errors.append(outcome)
                elif outcome:
                    logger.debug("Wrote %s", output_path)
                    report.written.append(output_path)
                else:
                    report.unchanged.append(output_path)
        return report

    def remove_stale(self, keep: Iterable[str], report: WriteReport) -> None:
        """Delete files under the destination that this run did not produce.

        Empty directories left behind are removed too. Failures are added to
        the report like write failures.
        """
        if not self.destination_root.is_dir():
            return
        keep_set = set(keep) | {INCOMPLETE_MARKER}
        for path in sorted(self.destination_root.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.destination_root).as_posix()
            if rel in keep_set:
                continue
            try:
                path.unlink()
            except OSError as exc:
                report.errors.append(WriteError(rel, exc))
                continue
            logger.debug("Removed stale %s", rel)
            report.removed.append(rel)
        for directory in sorted(
            (p for p in self.destination_root.rglob("*") if p.is_dir()), reverse=True
        ):
            if not any(directory.iterdir()):
                directory.rmdir()

    def mark_incomplete(self, reason: str) -> Path | None:
        """Flag the destination tree as the output of a failed run.

        Returns:
            The marker path, or None if the marker itself could not be written.
        """
        marker = self.destination_root / INCOMPLETE_MARKER
        try:
            self.destination_root.mkdir(parents=True, exist_ok=True)
            marker.write_bytes(f"{reason}\n".encode("utf-8"))
        except OSError as exc:
            logger.error("Could not mark %s as incomplete: %s", self.destination_root, exc)
            return None
        return marker

    def clear_incomplete(self) -> None:
        marker = self.destination_root / INCOMPLETE_MARKER
        if marker.exists():
            marker.unlink()

    def is_incomplete(self) -> bool:
        return (self.destination_root / INCOMPLETE_MARKER).exists()
