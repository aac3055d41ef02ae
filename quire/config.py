"""Build configuration for Quire.

Configuration is read from ``quire.yaml`` in the project root, layered over
built-in defaults, and finally over any values passed explicitly (usually
from the command line).

Key items:
- SortOrder: The collection ordering options.
- BuildConfig: Resolved, validated configuration for one run.
- load_config: Read ``quire.yaml`` and produce a BuildConfig.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "quire.yaml"


class SortOrder(str, Enum):
    """Ordering applied to every collection."""

    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    PATH = "path"

    @classmethod
    def parse(cls, value: str | SortOrder) -> SortOrder:
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(order.value for order in cls)
            raise ConfigError(f"unknown sort order {value!r} (expected one of {choices})") from None


DEFAULT_CONFIG: dict[str, Any] = {
    "source_root": "content",
    "destination_root": "output",
    "template_dir": "templates",
    "sort": SortOrder.DATE_DESC.value,
    "workers": None,
    "include_drafts": False,
    "clean": True,
    "site_url": "",
    "site_title": "",
}


def default_workers() -> int:
    return max(1, os.cpu_count() or 1)


@dataclass(frozen=True)
class BuildConfig:
    """Resolved configuration for a single generation run.

    Attributes:
        source_root: Directory holding the Markdown documents.
        destination_root: Directory receiving the rendered files.
        template_dir: Directory holding the Jinja2 layouts.
        sort: Ordering applied to collections.
        workers: Size of the worker pools used for load, render and write.
        include_drafts: Whether documents with ``draft: true`` are built.
        clean: Whether stale files in the destination are removed.
        site_url: Absolute base URL; enables the RSS feed and sitemap.
        site_title: Title used in feeds and available to templates.
    """

    source_root: Path
    destination_root: Path
    template_dir: Path
    sort: SortOrder = SortOrder.DATE_DESC
    workers: int = 1
    include_drafts: bool = False
    clean: bool = True
    site_url: str = ""
    site_title: str = ""

    def as_template_context(self) -> dict[str, Any]:
        """Values exposed to templates as ``config``."""
        return {
            "site_url": self.site_url,
            "site_title": self.site_title,
            "sort": self.sort.value,
        }


def _read_config_file(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        return {}
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML: {exc}", config_path) from exc
    if not isinstance(loaded, dict):
        raise ConfigError("configuration must be a mapping", config_path)
    unknown = sorted(set(loaded) - set(DEFAULT_CONFIG))
    if unknown:
        raise ConfigError(f"unknown option(s): {', '.join(unknown)}", config_path)
    return loaded


def load_config(project_root: Path, **overrides: Any) -> BuildConfig:
    """Load configuration from quire.yaml.

    Args:
        project_root: Root directory of the project. Relative paths in the
            configuration are resolved against it.
        **overrides: Explicit values that win over the file. ``None`` values
            are ignored so unset CLI options fall through.

    Returns:
        The validated BuildConfig.

    Raises:
        ConfigError: If the file or any value is invalid.
    """
    config = DEFAULT_CONFIG.copy()
    config.update(_read_config_file(project_root / CONFIG_FILENAME))
    for key, value in overrides.items():
        if key not in DEFAULT_CONFIG:
            raise ConfigError(f"unknown option: {key}")
        if value is not None:
            config[key] = value

    workers = config["workers"]
    if workers is None:
        workers = default_workers()
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise ConfigError(f"workers must be a positive integer, got {workers!r}")

    source_root = _resolve(project_root, config["source_root"], "source_root")
    destination_root = _resolve(project_root, config["destination_root"], "destination_root")
    template_dir = _resolve(project_root, config["template_dir"], "template_dir")
    inputs = {"source_root": source_root, "template_dir": template_dir}
    config_path = project_root / CONFIG_FILENAME
    if config_path.exists():
        inputs[CONFIG_FILENAME] = config_path
    _check_destination(destination_root, inputs)

    return BuildConfig(
        source_root=source_root,
        destination_root=destination_root,
        template_dir=template_dir,
        sort=SortOrder.parse(config["sort"]),
        workers=workers,
        include_drafts=bool(config["include_drafts"]),
        clean=bool(config["clean"]),
        site_url=str(config["site_url"] or "").rstrip("/"),
        site_title=str(config["site_title"] or ""),
    )


def _resolve(project_root: Path, value: Any, name: str) -> Path:
    if not isinstance(value, (str, os.PathLike)) or not str(value):
        raise ConfigError(f"{name} must be a path, got {value!r}")
    path = Path(value)
    if not path.is_absolute():
        path = project_root / path
    return path


def _check_destination(destination_root: Path, inputs: dict[str, Path]) -> None:
    """Refuse a destination that would hold the inputs.

    Stale outputs are deleted from the destination, so a destination equal
    to or above the source root or template directory would delete them.
    """
    dest = destination_root.resolve()
    for name, path in inputs.items():
        resolved = path.resolve()
        if resolved == dest or dest in resolved.parents:
            raise ConfigError(
                f"destination_root {destination_root} must not contain {name} ({path})"
            )
