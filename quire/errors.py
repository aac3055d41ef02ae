"""Error taxonomy for Quire.

Every error carries the source file it concerns (when there is one) and a
human-readable message, so the CLI can print a uniform summary.

Classes:
    QuireError: Base class for all Quire errors.
    ParseError: Malformed front-matter; the document is skipped.
    PathCollisionError: Two sources map to the same output path; fatal.
    RenderError: A template could not be rendered; fatal.
    WriteError: An output file could not be written; aggregated.
    ConfigError: Invalid configuration; fatal.
"""

from __future__ import annotations

from pathlib import Path


class QuireError(Exception):
    """Error during a site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error, if any.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    fatal = True

    def __init__(
        self,
        source_path: Path | str | None,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = Path(source_path) if source_path is not None else None
        self.message = message
        self.original_error = original_error
        if self.source_path is None:
            super().__init__(message)
        else:
            super().__init__(f"{self.source_path.as_posix()}: {message}")


class ParseError(QuireError):
    """Front-matter could not be parsed. The document is skipped."""

    fatal = False


class PathCollisionError(QuireError):
    """Several sources resolve to the same output path.

    Attributes:
        output_path: The contested output path.
        sources: Every source path mapping to it, sorted.
    """

    def __init__(self, output_path: str, sources: list[str]):
        self.output_path = output_path
        self.sources = sorted(sources)
        joined = ", ".join(self.sources)
        super().__init__(
            self.sources[0],
            f"output path {output_path!r} is produced by {joined}",
        )


class RenderError(QuireError):
    """A template references an undefined placeholder or is invalid."""


class WriteError(QuireError):
    """An output file could not be written.

    Attributes:
        output_path: Relative output path that failed.
    """

    fatal = False

    def __init__(self, output_path: str, original_error: Exception):
        self.output_path = output_path
        super().__init__(
            None,
            f"could not write {output_path}: {original_error}",
            original_error,
        )


class ConfigError(QuireError):
    """The build configuration is invalid."""

    def __init__(self, message: str, source_path: Path | str | None = None):
        super().__init__(source_path, message)
