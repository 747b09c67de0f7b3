"""Resolves a search query into candidate URLs.

Pages through the search backend under the daily quota, persisting the
accumulated results to the day-scoped cache after every page so partial
progress survives a later failure.
"""

import logging
from typing import Protocol

from src.errors import ConfigurationError, QuotaExceeded
from src.storage.cache import ResultCache
from src.storage.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

RESULTS_PER_PAGE = 10


class SearchBackend(Protocol):
    async def query(self, search_query: str, offset: int) -> list[str]: ...


def dedupe(urls: list[str]) -> list[str]:
    """Drop repeated URLs, keeping first-seen order."""
    seen: set[str] = set()
    unique = []
    for url in urls:
        if url not in seen:
            seen.add(url)
            unique.append(url)
    return unique


class UrlResolver:
    """Assembles an ordered, deduplicated URL list for a search query.

    The cache holds the raw per-page results, so the next page to fetch is
    ``len(cached) // 10`` and a cached list whose length is not a multiple
    of 10 means the backend has no more results.
    """

    def __init__(
        self,
        backend: SearchBackend,
        rate_limiter: RateLimiter,
        cache: ResultCache,
        max_pages: int = 10,
    ):
        self.backend = backend
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.max_pages = max_pages

    async def resolve(self, query: str, want_count: int) -> list[str]:
        """Return up to ``want_count`` URLs for ``query``.

        Backend failures end resolution early with whatever was collected.

        Raises:
            QuotaExceeded: If the daily quota is used up before any URL
                is available.
            ConfigurationError: If the search backend is not configured.
        """
        raw = await self.cache.get_urls(query)
        if raw:
            logger.info("Loaded %d cached URLs for '%s'", len(raw), query)

        page = len(raw) // RESULTS_PER_PAGE
        exhausted = len(raw) % RESULTS_PER_PAGE != 0

        while len(dedupe(raw)) < want_count and not exhausted and page < self.max_pages:
            day = self.rate_limiter.today()
            allowed, usage = await self.rate_limiter.try_acquire(day)
            if not allowed:
                if not raw:
                    raise QuotaExceeded(
                        f"daily search limit of {self.rate_limiter.daily_limit} reached"
                    )
                logger.warning(
                    "Daily search limit reached after %d URLs for '%s'; using partial results",
                    len(dedupe(raw)), query,
                )
                break

            offset = page * RESULTS_PER_PAGE + 1
            try:
                logger.info("Fetching search page %d for '%s' (quota %d)", page + 1, query, usage)
                links = (await self.backend.query(query, offset))[:RESULTS_PER_PAGE]
            except ConfigurationError:
                await self.rate_limiter.release(day)
                raise
            except Exception as e:
                await self.rate_limiter.release(day)
                logger.error("Search page %d failed for '%s': %s", page + 1, query, e)
                break

            raw = await self.cache.append_urls(query, links)
            page += 1
            if len(links) < RESULTS_PER_PAGE:
                exhausted = True

        urls = dedupe(raw)[:want_count]
        logger.info("Resolved %d URLs for '%s'", len(urls), query)
        return urls
