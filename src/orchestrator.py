"""Pipeline orchestrator for the scrape pipeline.

Ties together all pipeline stages:
1. Plan: LLM turns the user request into a search query + extraction prompt
2. Resolve: paginated search under the daily quota → candidate URLs
3. Scrape: render each URL with Playwright (cached per URL per day)
4. Extract: token-budgeted chunks → LLM → JSON records per chunk

Planning and resolution failures abort the run. Scraping and extraction
absorb per-page and per-chunk failures as inline error markers.
"""

import functools
import logging
import uuid
from typing import Any, AsyncContextManager, Callable, Optional

from src.crawler.browser import BrowserFetcher
from src.crawler.scraper import PageFetcher, PageScraper
from src.errors import NoURLsFound, PipelineError
from src.extraction.chunker import split_pages
from src.extraction.extractor import Extractor
from src.llm.client import LLMClient
from src.llm.planner import Planner
from src.models import PipelineResult, PipelineState, QuotaStatus
from src.search.client import GoogleSearchClient
from src.search.resolver import UrlResolver
from src.storage.cache import ResultCache
from src.storage.rate_limiter import RateLimiter
from src.storage.store import KeyValueStore, MemoryStore, SqliteStore

logger = logging.getLogger(__name__)

FetcherFactory = Callable[[], AsyncContextManager[PageFetcher]]


class PipelineCoordinator:
    """Runs one pipeline instance per user request.

    Instances may run concurrently; they share only the rate limiter and
    the result cache.
    """

    def __init__(
        self,
        planner: Planner,
        resolver: UrlResolver,
        cache: ResultCache,
        extractor: Extractor,
        fetcher_factory: FetcherFactory,
        rate_limiter: RateLimiter,
        max_urls: int = 10,
        max_tokens_per_chunk: int = 6000,
        page_timeout_ms: int = 45000,
    ):
        self.planner = planner
        self.resolver = resolver
        self.cache = cache
        self.extractor = extractor
        self.fetcher_factory = fetcher_factory
        self.rate_limiter = rate_limiter
        self.max_urls = max_urls
        self.max_tokens_per_chunk = max_tokens_per_chunk
        self.page_timeout_ms = page_timeout_ms

    async def run(self, user_prompt: str) -> PipelineResult:
        """Run the full pipeline for ``user_prompt``.

        Returns:
            PipelineResult with the plan and one output per chunk, in order.

        Raises:
            PlanningFailed, QuotaExceeded, NoURLsFound, ConfigurationError:
                on fatal failures.
        """
        run_id = uuid.uuid4().hex[:8]
        logger.info("=== Pipeline starting: run_id=%s ===", run_id)
        state = self._advance(run_id, PipelineState.PLANNING)

        try:
            # ── Stage 1: Plan ──────────────────────────────────────────
            plan = await self.planner.create_plan(user_prompt)

            # ── Stage 2: Resolve URLs ──────────────────────────────────
            state = self._advance(run_id, PipelineState.RESOLVING)
            urls = await self.resolver.resolve(plan.search_query, self.max_urls)
            if not urls:
                raise NoURLsFound(f"no URLs found for '{plan.search_query}'")

            # ── Stage 3: Scrape ────────────────────────────────────────
            state = self._advance(run_id, PipelineState.SCRAPING)
            async with self.fetcher_factory() as fetcher:
                scraper = PageScraper(fetcher, self.cache, timeout_ms=self.page_timeout_ms)
                entries = await scraper.scrape_all(urls)

            # ── Stage 4: Extract ───────────────────────────────────────
            state = self._advance(run_id, PipelineState.EXTRACTING)
            chunks = split_pages(entries, self.max_tokens_per_chunk)
            chunk_results = await self.extractor.extract_all(plan.extraction_prompt, chunks)

        except PipelineError as e:
            logger.error(
                "=== Pipeline failed: run_id=%s, state=%s, error=%s: %s ===",
                run_id, state.value, type(e).__name__, e,
            )
            raise

        self._advance(run_id, PipelineState.DONE)
        logger.info(
            "=== Pipeline complete: run_id=%s, urls=%d, chunks=%d ===",
            run_id, len(urls), len(chunk_results),
        )
        return PipelineResult(
            plan=plan,
            results=[r.to_output() for r in chunk_results],
            pages=[entry.page for entry in entries],
            state=PipelineState.DONE,
        )

    async def quota_status(self) -> QuotaStatus:
        return await self.rate_limiter.status()

    @staticmethod
    def _advance(run_id: str, state: PipelineState) -> PipelineState:
        logger.info("Run %s → %s", run_id, state.value)
        return state


def create_store(config: dict[str, Any]) -> KeyValueStore:
    """Build the shared store: SQLite-backed if ``store.path`` is set."""
    path = config.get("store", {}).get("path")
    if path:
        return SqliteStore(path)
    return MemoryStore()


def build_coordinator(
    config: dict[str, Any], store: Optional[KeyValueStore] = None
) -> PipelineCoordinator:
    """Wire the production collaborators from configuration.

    Args:
        config: Application configuration dict.
        store: Shared store; created from config if omitted.
    """
    store = store or create_store(config)
    llm_config = config["llm"]
    search_config = config["search"]
    crawl_config = config["crawl"]
    pipeline_config = config["pipeline"]

    llm_client = LLMClient(
        project_id=llm_config.get("project_id"),
        region=llm_config.get("region", "us-central1"),
        model_name=llm_config.get("model", "gemini-2.0-flash"),
        temperature=llm_config.get("temperature", 0.1),
        max_output_tokens=llm_config.get("max_output_tokens", 8192),
    )
    rate_limiter = RateLimiter(store, daily_limit=search_config.get("daily_limit", 90))
    cache = ResultCache(store)
    search_client = GoogleSearchClient(
        api_key=search_config.get("api_key"),
        cse_id=search_config.get("cse_id"),
        timeout_seconds=search_config.get("timeout_seconds", 15),
    )

    return PipelineCoordinator(
        planner=Planner(llm_client),
        resolver=UrlResolver(
            search_client, rate_limiter, cache, max_pages=search_config.get("max_pages", 10)
        ),
        cache=cache,
        extractor=Extractor(llm_client),
        fetcher_factory=functools.partial(
            BrowserFetcher, headless=crawl_config.get("headless", True)
        ),
        rate_limiter=rate_limiter,
        max_urls=pipeline_config.get("max_urls", 10),
        max_tokens_per_chunk=pipeline_config.get("max_tokens_per_chunk", 6000),
        page_timeout_ms=crawl_config.get("page_timeout_ms", 45000),
    )


async def run_pipeline(
    config: dict[str, Any], user_prompt: str, store: Optional[KeyValueStore] = None
) -> PipelineResult:
    """Run the pipeline once with production collaborators."""
    return await build_coordinator(config, store).run(user_prompt)


async def get_quota_status(
    config: dict[str, Any], store: Optional[KeyValueStore] = None
) -> QuotaStatus:
    """Read today's search quota without consuming it."""
    store = store or create_store(config)
    limiter = RateLimiter(store, daily_limit=config["search"].get("daily_limit", 90))
    return await limiter.status()
