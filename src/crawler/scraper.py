"""Per-URL scraping with day-scoped caching.

Scraping never fails the pipeline: a page that cannot be rendered is
recorded with an ``error`` tag and cached like any other result, so a
broken URL is not retried until the next UTC day.
"""

import logging
from typing import Any, Protocol

from src.models import PageEntry, ScrapedPage
from src.storage.cache import ResultCache

logger = logging.getLogger(__name__)


class PageFetcher(Protocol):
    async def render(self, url: str, timeout_ms: int) -> dict[str, Any]: ...


class PageScraper:
    """Returns cached pages when available, otherwise renders and caches."""

    def __init__(self, fetcher: PageFetcher, cache: ResultCache, timeout_ms: int = 45000):
        self.fetcher = fetcher
        self.cache = cache
        self.timeout_ms = timeout_ms

    async def scrape(self, url: str) -> ScrapedPage:
        cached = await self.cache.get_page(url)
        if cached is not None:
            logger.info("Using cached page for %s", url)
            return cached

        logger.info("Scraping %s", url)
        try:
            data = await self.fetcher.render(url, self.timeout_ms)
            page = ScrapedPage.from_fetch(url, data)
        except Exception as e:
            logger.warning("Scraping failed for %s: %s", url, e)
            page = ScrapedPage.failed(url, f"Scraping failed: {type(e).__name__}")

        await self.cache.put_page(url, page)
        return page

    async def scrape_all(self, urls: list[str]) -> list[PageEntry]:
        """Scrape ``urls`` one at a time, keeping input order."""
        entries = []
        for idx, url in enumerate(urls, 1):
            logger.debug("Page %d/%d: %s", idx, len(urls), url)
            entries.append(PageEntry(url=url, page=await self.scrape(url)))
        failed = sum(1 for e in entries if e.page.error)
        logger.info("Scraped %d pages (%d failed)", len(entries), failed)
        return entries
