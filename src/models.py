"""Shared data models for the scrape pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class PipelineState(str, Enum):
    """Stages a pipeline run moves through."""

    PLANNING = "planning"
    RESOLVING = "resolving"
    SCRAPING = "scraping"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Plan:
    """What to search for and how to extract records from the results."""

    search_query: str
    extraction_prompt: str

    @classmethod
    def from_dict(cls, data: Any) -> "Plan":
        """Build a plan from the model's parsed JSON.

        Accepts ``searchApiQuery`` as an alias for ``searchQuery``.

        Raises:
            ValueError: If the payload is not an object or a field is
                missing or blank.
        """
        if not isinstance(data, dict):
            raise ValueError(f"plan must be a JSON object, got {type(data).__name__}")
        query = data.get("searchQuery") or data.get("searchApiQuery")
        prompt = data.get("extractionPrompt")
        if not isinstance(query, str) or not query.strip():
            raise ValueError("plan is missing 'searchQuery'")
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("plan is missing 'extractionPrompt'")
        return cls(search_query=query.strip(), extraction_prompt=prompt.strip())

    def to_dict(self) -> dict[str, str]:
        return {"searchQuery": self.search_query, "extractionPrompt": self.extraction_prompt}


@dataclass
class ScrapedPage:
    """Content scraped from a single URL.

    ``error`` is set when the page could not be rendered; every content
    field is empty in that case.
    """

    url: str
    title: Optional[str] = None
    meta_description: Optional[str] = None
    h1: list[str] = field(default_factory=list)
    h2: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    body_text: str = ""
    error: Optional[str] = None

    @classmethod
    def failed(cls, url: str, reason: str) -> "ScrapedPage":
        return cls(url=url, error=reason)

    @classmethod
    def from_fetch(cls, url: str, data: dict[str, Any]) -> "ScrapedPage":
        """Normalize a fetcher payload; absent fields become None or empty."""
        return cls(
            url=url,
            title=data.get("title") or None,
            meta_description=data.get("meta_description") or None,
            h1=[str(h) for h in data.get("h1") or []],
            h2=[str(h) for h in data.get("h2") or []],
            links=[str(link) for link in data.get("links") or []],
            body_text=data.get("body_text") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "metaDescription": self.meta_description,
            "h1": list(self.h1),
            "h2": list(self.h2),
            "links": list(self.links),
            "bodyText": self.body_text,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ScrapedPage":
        """Rehydrate a page written by :meth:`to_dict`.

        Raises:
            ValueError: If the payload does not have the expected shape.
        """
        if not isinstance(data, dict) or not isinstance(data.get("url"), str):
            raise ValueError("scraped page payload must be an object with a 'url'")
        for key in ("h1", "h2", "links"):
            if not isinstance(data.get(key, []), list):
                raise ValueError(f"scraped page field '{key}' must be a list")
        body = data.get("bodyText", "")
        if not isinstance(body, str):
            raise ValueError("scraped page field 'bodyText' must be a string")
        return cls(
            url=data["url"],
            title=data.get("title"),
            meta_description=data.get("metaDescription"),
            h1=list(data.get("h1", [])),
            h2=list(data.get("h2", [])),
            links=list(data.get("links", [])),
            body_text=body,
            error=data.get("error"),
        )


@dataclass(frozen=True)
class PageEntry:
    """A URL paired with its scraped content, as fed to the chunker."""

    url: str
    page: ScrapedPage


@dataclass
class ChunkResult:
    """Outcome of extracting one chunk: a JSON value or an error marker."""

    index: int
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_output(self) -> Any:
        if self.error is not None:
            return {"error": self.error}
        return self.value


@dataclass
class QuotaStatus:
    """Snapshot of today's search quota."""

    used: int
    remaining: int
    limit: int

    def to_dict(self) -> dict[str, int]:
        return {"used": self.used, "remaining": self.remaining, "limit": self.limit}


@dataclass
class PipelineResult:
    """Final output of a successful pipeline run."""

    plan: Plan
    results: list[Any] = field(default_factory=list)
    pages: list[ScrapedPage] = field(default_factory=list)
    state: PipelineState = PipelineState.DONE
