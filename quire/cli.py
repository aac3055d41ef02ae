"""Command-line interface for Quire.

This module defines the CLI commands using the Click framework.

Commands:
- new: Scaffold a new Quire project.
- build: Generate the site into the destination directory.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

import click

from . import __version__
from .config import SortOrder, load_config
from .errors import ConfigError, QuireError

# Path to the files copied by `quire new`
_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="quire")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.option("-q", "--quiet", is_flag=True, help="Only show errors")
def cli(verbose: bool, quiet: bool):
    """Quire static site generator."""
    _configure_logging(verbose=verbose, quiet=quiet)


def _configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("quire").setLevel(level)


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new Quire project."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Quire site created at {target}")


@cli.command()
@click.option(
    "--project",
    "project_root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Project root holding quire.yaml (defaults to the current directory)",
)
@click.option("--source", "source_root", type=click.Path(path_type=Path), help="Source root")
@click.option(
    "--dest", "destination_root", type=click.Path(path_type=Path), help="Destination root"
)
@click.option(
    "--templates", "template_dir", type=click.Path(path_type=Path), help="Template directory"
)
@click.option(
    "--sort",
    type=click.Choice([order.value for order in SortOrder]),
    default=None,
    help="Collection ordering (overrides quire.yaml)",
)
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Worker pool size")
@click.option("--drafts", is_flag=True, help="Include draft documents")
def build(project_root, source_root, destination_root, template_dir, sort, workers, drafts):
    """Build the site into the destination directory."""
    project_root = (project_root or Path.cwd()).resolve()
    from .build import generate

    try:
        config = load_config(
            project_root,
            source_root=source_root,
            destination_root=destination_root,
            template_dir=template_dir,
            sort=sort,
            workers=workers,
            include_drafts=drafts or None,
        )
        result = generate(config)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None

    _print_summary(result, project_root)
    if not result.ok:
        raise SystemExit(result.exit_code)


def _display_path(path: Path | None, project_root: Path) -> str:
    if path is None:
        return ""
    try:
        return str(path.relative_to(project_root))
    except ValueError:
        return str(path)


def _describe(error: QuireError) -> str:
    if error.source_path is None:
        return error.message
    return f"{error.source_path.as_posix()}: {error.message}"


def _print_summary(result, project_root: Path) -> None:
    """Print every warning and error, then a one-line outcome."""
    if result.warnings:
        heading = f"Skipped {len(result.warnings)} document(s):"
        click.echo(click.style(heading, fg="yellow", bold=True), err=True)
        for warning in result.warnings:
            click.echo(click.style(f"  {_describe(warning)}", fg="yellow"), err=True)

    errors = result.errors
    if errors:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        for error in errors:
            label = f"  {type(error).__name__}: {_describe(error)}"
            click.echo(click.style(label, fg="red"), err=True)

    report = result.write_report
    dest = _display_path(result.config.destination_root, project_root)
    summary = (
        f"{len(report.written)} written, {len(report.unchanged)} unchanged, "
        f"{len(report.removed)} removed in {dest}"
    )
    if result.ok:
        count = len(result.site.documents) if result.site else 0
        click.echo(f"Built {count} documents: {summary}")
    else:
        click.echo(click.style(f"Output is incomplete: {summary}", fg="red"), err=True)


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Create the directory structure and files for a new Quire project."""
    for src_path in _SCAFFOLD_DIR.rglob("*"):
        if src_path.is_dir():
            continue
        rel_path = src_path.relative_to(_SCAFFOLD_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)
    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("QUIRE_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        # Non-fatal: user can run git init manually
        logging.getLogger(__name__).debug("git init failed: %s", exc)
