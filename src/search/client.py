"""Google Custom Search JSON API client."""

import logging
from typing import Optional

import httpx

from src.errors import ConfigurationError, SearchBackendError

logger = logging.getLogger(__name__)

_ENDPOINT = "https://www.googleapis.com/customsearch/v1"


class GoogleSearchClient:
    """Fetches one page (up to 10 results) of search result links per call."""

    def __init__(
        self,
        api_key: Optional[str],
        cse_id: Optional[str],
        timeout_seconds: float = 15.0,
        endpoint: str = _ENDPOINT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.cse_id = cse_id
        self.endpoint = endpoint
        self.timeout = httpx.Timeout(timeout_seconds, connect=5.0)
        self.transport = transport

    async def query(self, search_query: str, offset: int) -> list[str]:
        """Return result links starting at the 1-indexed ``offset``.

        Raises:
            ConfigurationError: If the API key or search engine id is missing.
            SearchBackendError: On HTTP errors or an unreadable response.
        """
        if not self.api_key or not self.cse_id:
            raise ConfigurationError(
                "Google API key or CSE id missing (GOOGLE_API_KEY / GOOGLE_CSE_ID)"
            )

        params = {"key": self.api_key, "cx": self.cse_id, "q": search_query, "start": offset}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.endpoint, params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise SearchBackendError(
                f"search API returned HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise SearchBackendError(f"search API request failed: {e}") from e

        if not isinstance(data, dict):
            raise SearchBackendError("search API returned a non-object payload")
        items = data.get("items") or []
        links = [item["link"] for item in items if isinstance(item, dict) and item.get("link")]
        logger.debug("Search '%s' start=%d returned %d links", search_query, offset, len(links))
        return links
