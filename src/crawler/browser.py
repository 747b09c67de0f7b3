"""Headless page rendering with Playwright and BeautifulSoup.

One browser and context are shared by all pages of a pipeline run; pages
are opened and closed one at a time. The browser starts on the first
render, so a run served entirely from cache never launches Chromium.
"""

import logging
from typing import Any, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeout,
    async_playwright,
)

from src.errors import RenderError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


def _clean_text(text: Optional[str]) -> str:
    return " ".join((text or "").split())


def parse_html(html: str, base_url: str) -> dict[str, Any]:
    """Pull title, meta description, headings, links and body text from HTML.

    Script, style and page-chrome elements are dropped before the body text
    is extracted. Links are resolved against ``base_url``.
    """
    soup = BeautifulSoup(html, "lxml")

    title = _clean_text(soup.title.get_text()) if soup.title else ""
    meta = soup.find("meta", attrs={"name": "description"})
    meta_description = _clean_text(meta.get("content")) if meta else ""

    links = []
    for tag in soup.find_all("a", href=True):
        href = tag["href"].strip()
        if not href or href.startswith("#") or href.startswith("javascript:"):
            continue
        links.append(urljoin(base_url, href))

    h1 = [_clean_text(tag.get_text()) for tag in soup.find_all("h1")]
    h2 = [_clean_text(tag.get_text()) for tag in soup.find_all("h2")]

    for tag in soup(["script", "style", "noscript", "header", "footer", "nav"]):
        tag.decompose()
    root = soup.body or soup
    body_text = root.get_text(separator=" ", strip=True)

    return {
        "title": title or None,
        "meta_description": meta_description or None,
        "h1": [h for h in h1 if h],
        "h2": [h for h in h2 if h],
        "links": links,
        "body_text": body_text,
    }


class BrowserFetcher:
    """Renders pages in a shared headless Chromium context.

    Use as an async context manager so the browser is closed at the end of
    the run.
    """

    def __init__(self, headless: bool = True, user_agent: str = DEFAULT_USER_AGENT):
        self.headless = headless
        self.user_agent = user_agent
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> "BrowserFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _ensure_context(self) -> BrowserContext:
        if self._context is None:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
            self._context = await self._browser.new_context(user_agent=self.user_agent)
            logger.info("Browser launched (headless=%s)", self.headless)
        return self._context

    async def render(self, url: str, timeout_ms: int) -> dict[str, Any]:
        """Load ``url`` and return its extracted fields.

        Raises:
            RenderError: On navigation timeout or any browser failure.
        """
        context = await self._ensure_context()
        page: Optional[Page] = None
        try:
            page = await context.new_page()
            response = await page.goto(url, timeout=timeout_ms, wait_until="domcontentloaded")

            # Allow a short time for JS rendering after DOM is loaded
            try:
                await page.wait_for_load_state("networkidle", timeout=5000)
            except PlaywrightTimeout:
                logger.debug("Network never went idle for %s, using loaded DOM", url)

            html = await page.content()
            status = response.status if response else 0
            logger.debug("Rendered %s status=%d chars=%d", url, status, len(html))
            return parse_html(html, url)

        except PlaywrightTimeout as e:
            raise RenderError(f"timeout after {timeout_ms}ms") from e
        except Exception as e:
            raise RenderError(str(e)[:300]) from e

        finally:
            if page:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug("Failed to close page for %s: %s", url, e)

    async def close(self) -> None:
        if self._context is not None:
            await self._context.close()
        if self._browser is not None:
            await self._browser.close()
            logger.info("Browser closed")
        if self._playwright is not None:
            await self._playwright.stop()
        self._playwright = self._browser = self._context = None
