"""In-memory stand-ins for the pipeline's external collaborators."""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

from src.errors import RenderError, SearchBackendError


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now += timedelta(**kwargs)

    def next_day(self) -> None:
        """Jump to one second past the next UTC midnight."""
        midnight = datetime(self.now.year, self.now.month, self.now.day, tzinfo=timezone.utc)
        self.now = midnight + timedelta(days=1, seconds=1)


class FakeLLM:
    """Returns scripted responses in order.

    Each response is either a string or an exception instance to raise.
    """

    def __init__(self, responses: list[Union[str, Exception]]):
        self.responses = list(responses)
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError("FakeLLM ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeSearch:
    """Serves result pages keyed by 1-indexed offset.

    Offsets mapped to an exception raise it; missing offsets return [].
    """

    def __init__(self, pages: Optional[dict[int, Union[list[str], Exception]]] = None):
        self.pages = pages or {}
        self.calls: list[tuple[str, int]] = []

    async def query(self, search_query: str, offset: int) -> list[str]:
        self.calls.append((search_query, offset))
        result = self.pages.get(offset, [])
        if isinstance(result, Exception):
            raise result
        return list(result)


def search_page(prefix: str, count: int) -> list[str]:
    return [f"https://{prefix}.example.com/{i}" for i in range(count)]


def failing_search() -> FakeSearch:
    return FakeSearch({1: SearchBackendError("HTTP 500")})


class FakeFetcher:
    """Renders canned page payloads; URLs in ``failures`` raise RenderError."""

    def __init__(
        self,
        pages: Optional[dict[str, dict[str, Any]]] = None,
        failures: Optional[set[str]] = None,
    ):
        self.pages = pages or {}
        self.failures = failures or set()
        self.calls: list[str] = []
        self.entered = 0
        self.closed = 0

    async def __aenter__(self) -> "FakeFetcher":
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed += 1

    async def render(self, url: str, timeout_ms: int) -> dict[str, Any]:
        self.calls.append(url)
        if url in self.failures:
            raise RenderError(f"timeout after {timeout_ms}ms")
        return self.pages.get(url, {
            "title": f"Title of {url}",
            "meta_description": "A page",
            "h1": ["Heading"],
            "h2": [],
            "links": [],
            "body_text": f"Body of {url}",
        })

    def factory(self) -> Callable[[], "FakeFetcher"]:
        return lambda: self
