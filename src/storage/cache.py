"""Day-scoped cache for search results and scraped pages.

All entries expire at the next UTC midnight. A corrupt entry is treated as
a miss.
"""

import json
import logging
from datetime import datetime
from typing import Callable, Optional

from src.models import ScrapedPage
from src.storage.clock import day_key, seconds_until_midnight, utc_now
from src.storage.store import KeyValueStore

logger = logging.getLogger(__name__)


class ResultCache:
    """Caches URL lists per search query and scraped pages per URL."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self._clock = clock

    def _urls_key(self, query: str) -> str:
        return f"search_urls:{day_key(self._clock())}:{query}"

    def _page_key(self, url: str) -> str:
        return f"scraped:{day_key(self._clock())}:{url}"

    async def get_urls(self, query: str) -> list[str]:
        """Return today's accumulated URLs for ``query`` (empty on miss)."""
        raw = await self.store.get(self._urls_key(query))
        if raw is None:
            return []
        try:
            urls = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Discarding corrupt URL cache entry for '%s': %s", query, e)
            return []
        if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
            logger.warning("Discarding malformed URL cache entry for '%s'", query)
            return []
        return urls

    async def append_urls(self, query: str, new_urls: list[str]) -> list[str]:
        """Append ``new_urls`` to the cached list and store it back.

        Read-modify-write without a lock: concurrent appends for the same
        query may lose one writer's URLs.

        Returns:
            The full list as stored.
        """
        urls = await self.get_urls(query) + list(new_urls)
        await self.store.set(
            self._urls_key(query),
            json.dumps(urls),
            ttl_seconds=seconds_until_midnight(self._clock()),
        )
        return urls

    async def get_page(self, url: str) -> Optional[ScrapedPage]:
        raw = await self.store.get(self._page_key(url))
        if raw is None:
            return None
        try:
            return ScrapedPage.from_dict(json.loads(raw))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Discarding corrupt page cache entry for %s: %s", url, e)
            return None

    async def put_page(self, url: str, page: ScrapedPage) -> None:
        await self.store.set(
            self._page_key(url),
            json.dumps(page.to_dict()),
            ttl_seconds=seconds_until_midnight(self._clock()),
        )
