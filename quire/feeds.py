"""Feed generation for Quire.

Generates sitemap.xml and an RSS 2.0 feed from the Site. Feeds are returned
as text keyed by output path and go through the same writer as documents.

Feeds only use document dates, never the wall clock, so rebuilding
unchanged content yields identical bytes.

Classes:
    FeedGenerator: Abstract base class for feed generators.
    SitemapGenerator: Generates sitemap.xml.
    RSSGenerator: Generates feed.xml.
    FeedRegistry: Registry for managing feed generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from .site import Site
from .utils import escape_html, join_root_url

RFC822_FORMAT = "%a, %d %b %Y %H:%M:%S +0000"


class FeedGenerator(ABC):
    """Abstract base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output path of the feed, relative to the destination root."""
        ...

    @abstractmethod
    def generate(self, site: Site, site_url: str, title: str) -> str | None:
        """Generate feed content.

        Args:
            site: The Site for this run.
            site_url: Absolute base URL.
            title: Site title.

        Returns:
            Feed content, or None if the feed cannot be generated.
        """
        ...


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml listing every document in path order."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, site: Site, site_url: str, title: str) -> str | None:
        if not site_url:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for doc in site.documents:
            loc = escape_html(join_root_url(site_url, doc.url))
            if doc.date is not None:
                lastmod = doc.date.strftime("%Y-%m-%d")
                lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of the newest dated documents.

    Attributes:
        limit: Maximum number of items.
    """

    def __init__(self, limit: int = 20):
        self.limit = limit

    @property
    def filename(self) -> str:
        return "feed.xml"

    def generate(self, site: Site, site_url: str, title: str) -> str | None:
        if not site_url:
            return None
        dated = [doc for doc in site.documents if doc.date is not None]
        dated.sort(key=lambda doc: doc.source_path)
        dated.sort(key=lambda doc: doc.date, reverse=True)
        dated = dated[: self.limit]

        items = []
        for doc in dated:
            link = escape_html(join_root_url(site_url, doc.url))
            description = doc.metadata.get("description") or doc.title
            items.append(
                f"<item><title>{escape_html(doc.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid>"
                f"<description>{escape_html(str(description))}</description>"
                f"<pubDate>{doc.date.strftime(RFC822_FORMAT)}</pubDate></item>"
            )

        newest = dated[0].date if dated else datetime(1970, 1, 1)
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{escape_html(title or site_url)}</title>",
            f"<link>{escape_html(site_url)}/</link>",
            f"<description>{escape_html(title or site_url)}</description>",
            f"<lastBuildDate>{newest.strftime(RFC822_FORMAT)}</lastBuildDate>",
        ]
        rss.extend(items)
        rss.append("</channel></rss>")
        return "\n".join(rss) + "\n"


class FeedRegistry:
    """Registry for managing feed generators."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(self, site: Site, site_url: str, title: str) -> dict[str, str]:
        """Generate every registered feed.

        Returns:
            Mapping of output path to feed content, skipping feeds that
            produced nothing.
        """
        feeds: dict[str, str] = {}
        for generator in self._generators:
            content = generator.generate(site, site_url, title)
            if content is not None:
                feeds[generator.filename] = content
        return feeds


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with the sitemap and RSS generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
