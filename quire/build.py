"""Site generation for Quire.

Runs one generation: load documents, build the site graph, render every
output and write the tree.

    Loader -> Builder -> Renderer -> Writer

Load and render run on a worker pool; the builder is the barrier between
them because it needs every document. Per-document problems (malformed
front-matter, individual write failures) are collected and reported;
run-level problems (output path collisions, template errors) stop the run.

Key items:
- BuildResult: Everything the caller needs to report on a run.
- generate: Run a full generation for a BuildConfig.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from .config import BuildConfig
from .content import ContentLoader, ensure_unique_output_paths
from .errors import ConfigError, ParseError, PathCollisionError, QuireError, RenderError
from .feeds import FeedRegistry, create_default_feed_registry
from .site import Site, build_site
from .templates import TAG_LAYOUT, TemplateEngine
from .utils import slugify
from .writer import OutputWriter, WriteReport

logger = logging.getLogger(__name__)

TAGS_DIR = "tags"


@dataclass
class BuildResult:
    """Result of a generation run.

    Attributes:
        config: Configuration the run used.
        site: The Site, or None if loading failed.
        warnings: Per-document parse errors; those documents were skipped.
        write_report: Outcome of the write phase.
        fatal: The run-level error that stopped the run, if any.
        skipped_drafts: Drafts left out of the run.
    """

    config: BuildConfig
    site: Site | None = None
    warnings: list[ParseError] = field(default_factory=list)
    write_report: WriteReport = field(default_factory=WriteReport)
    fatal: QuireError | None = None
    skipped_drafts: list[str] = field(default_factory=list)

    @property
    def errors(self) -> list[QuireError]:
        """Every error of the run: the fatal one first, then write failures."""
        errors: list[QuireError] = [self.fatal] if self.fatal else []
        errors.extend(self.write_report.errors)
        return errors

    @property
    def ok(self) -> bool:
        return self.fatal is None and self.write_report.ok

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


@dataclass(frozen=True)
class _RenderJob:
    source: str
    output_path: str
    render: Callable[[], str]


def tag_output_paths(tags: Iterable[str]) -> dict[str, str]:
    """Give every tag its own page path under ``tags/``.

    Tags whose slugs coincide (``C++`` and ``C`` are both ``c``) are taken
    in sorted order: the first keeps the plain slug, the others get the
    lowest free ``-2``, ``-3`` suffix. Plain slugs are reserved before any
    suffix is handed out, so a tag literally named ``c-2`` keeps its path.
    """
    ordered = sorted(tags)
    slugs = {tag: slugify(tag, strip_date=False) for tag in ordered}
    assigned: dict[str, str] = {}
    used: set[str] = set()
    for tag in ordered:
        if slugs[tag] not in used:
            assigned[tag] = slugs[tag]
            used.add(slugs[tag])
    for tag in ordered:
        if tag in assigned:
            continue
        n = 2
        while f"{slugs[tag]}-{n}" in used:
            n += 1
        assigned[tag] = f"{slugs[tag]}-{n}"
        used.add(assigned[tag])
    return {tag: f"{TAGS_DIR}/{slug}/index.html" for tag, slug in assigned.items()}


def _plan_render_jobs(site: Site, engine: TemplateEngine) -> list[_RenderJob]:
    """Documents in source-path order, then tag pages in tag order."""
    jobs = [
        _RenderJob(
            doc.source_path,
            doc.output_path,
            lambda doc=doc: engine.render_document(doc, site),
        )
        for doc in site.documents
    ]
    if engine.has_layout(TAG_LAYOUT):
        paths = tag_output_paths(site.tags)
        for tag, documents in site.tags.items():
            jobs.append(
                _RenderJob(
                    f"<tag:{tag}>",
                    paths[tag],
                    lambda tag=tag, documents=documents: engine.render_tag_page(
                        tag, documents, site
                    ),
                )
            )
    return jobs


def _render_all(
    jobs: list[_RenderJob], workers: int
) -> tuple[dict[str, str], RenderError | None]:
    """Render every job in parallel, consuming results in job order.

    On the first RenderError the remaining jobs are cancelled and their
    output, rendered or not, is discarded.

    Returns:
        The outputs rendered before the failure (all of them on success) and
        the failure, if any.
    """
    outputs: dict[str, str] = {}
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(job.render) for job in jobs]
        for job, future in zip(jobs, futures):
            try:
                outputs[job.output_path] = future.result()
            except RenderError as exc:
                for pending in futures:
                    pending.cancel()
                return outputs, exc
    return outputs, None


def generate(
    config: BuildConfig,
    engine: TemplateEngine | None = None,
    feeds: FeedRegistry | None = None,
) -> BuildResult:
    """Generate the site described by ``config``.

    Args:
        config: Resolved build configuration.
        engine: Optional template engine; defaults to one over
            ``config.template_dir``.
        feeds: Optional feed registry; defaults to sitemap and RSS.

    Returns:
        BuildResult. Run-level failures are returned in ``fatal`` rather than
        raised so that the caller can print a complete summary.

    Raises:
        ConfigError: If the source root does not exist.
    """
    if not config.source_root.is_dir():
        raise ConfigError(f"source root {config.source_root} is not a directory")

    result = BuildResult(config=config)
    loader = ContentLoader(
        config.source_root,
        workers=config.workers,
        include_drafts=config.include_drafts,
    )
    writer = OutputWriter(config.destination_root, workers=config.workers)

    try:
        loaded = loader.load()
    except PathCollisionError as exc:
        logger.error("%s", exc)
        result.fatal = exc
        return result
    result.warnings = loaded.warnings
    result.skipped_drafts = loaded.skipped_drafts

    site = build_site(loaded.documents, config.sort)
    result.site = site

    engine = engine or TemplateEngine(config.template_dir, config)
    feeds = feeds if feeds is not None else create_default_feed_registry()
    jobs = _plan_render_jobs(site, engine)
    feed_outputs = feeds.generate_all(site, config.site_url, config.site_title)

    try:
        ensure_unique_output_paths(
            [(job.source, job.output_path) for job in jobs]
            + [(f"<feed:{path}>", path) for path in feed_outputs]
        )
    except PathCollisionError as exc:
        logger.error("%s", exc)
        result.fatal = exc
        return result

    outputs, render_error = _render_all(jobs, config.workers)
    if render_error is not None:
        logger.error("%s", render_error)
        result.fatal = render_error
        result.write_report = writer.write_all(outputs)
        writer.mark_incomplete(f"build aborted: {render_error}")
        return result

    outputs.update(feed_outputs)
    report = writer.write_all(outputs)
    if config.clean:
        writer.remove_stale(outputs, report)
    result.write_report = report

    if report.ok:
        writer.clear_incomplete()
    else:
        writer.mark_incomplete(f"{len(report.errors)} file(s) could not be written")
    logger.info(
        "Wrote %d files (%d unchanged) into %s",
        len(report.written),
        len(report.unchanged),
        config.destination_root,
    )
    return result
