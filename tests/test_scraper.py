"""Tests for cached page scraping and HTML field extraction."""

import unittest

from src.crawler.browser import parse_html
from src.crawler.scraper import PageScraper
from src.storage.cache import ResultCache
from src.storage.store import MemoryStore
from fakes import FakeClock, FakeFetcher

_HTML = """
<html>
  <head>
    <title> Austin Coffee </title>
    <meta name="description" content="Best coffee in town">
    <script>var tracking = 1;</script>
  </head>
  <body>
    <nav><a href="/home">Home</a></nav>
    <h1>Our   Shops</h1>
    <h2>Downtown</h2>
    <h2>East Side</h2>
    <p>Open daily from 7am.</p>
    <a href="https://maps.example.com/x">Map</a>
    <a href="#top">Top</a>
    <a href="javascript:void(0)">Noop</a>
    <footer>Copyright</footer>
  </body>
</html>
"""


class TestParseHtml(unittest.TestCase):

    def setUp(self):
        self.data = parse_html(_HTML, "https://coffee.example.com/shops")

    def test_title_and_meta(self):
        self.assertEqual(self.data["title"], "Austin Coffee")
        self.assertEqual(self.data["meta_description"], "Best coffee in town")

    def test_headings(self):
        self.assertEqual(self.data["h1"], ["Our Shops"])
        self.assertEqual(self.data["h2"], ["Downtown", "East Side"])

    def test_links_resolved_and_filtered(self):
        self.assertEqual(
            self.data["links"],
            ["https://coffee.example.com/home", "https://maps.example.com/x"],
        )

    def test_body_text_drops_scripts_and_chrome(self):
        body = self.data["body_text"]
        self.assertIn("Open daily from 7am.", body)
        self.assertNotIn("tracking", body)
        self.assertNotIn("Copyright", body)
        self.assertNotIn("Home", body)

    def test_missing_fields(self):
        data = parse_html("<html><body><p>hi</p></body></html>", "https://x.example.com")
        self.assertIsNone(data["title"])
        self.assertIsNone(data["meta_description"])
        self.assertEqual(data["h1"], [])
        self.assertEqual(data["body_text"], "hi")


class TestPageScraper(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.cache = ResultCache(MemoryStore(clock=self.clock), clock=self.clock)

    async def test_fresh_scrape_is_normalized_and_cached(self):
        fetcher = FakeFetcher(pages={"https://a.example.com": {"title": "A", "body_text": "text"}})
        scraper = PageScraper(fetcher, self.cache, timeout_ms=1000)

        page = await scraper.scrape("https://a.example.com")

        self.assertEqual(page.title, "A")
        self.assertIsNone(page.meta_description)
        self.assertEqual(page.h1, [])
        self.assertEqual(page.links, [])
        self.assertIsNone(page.error)
        self.assertEqual(await self.cache.get_page("https://a.example.com"), page)

    async def test_cache_hit_skips_fetch(self):
        fetcher = FakeFetcher()
        scraper = PageScraper(fetcher, self.cache)
        first = await scraper.scrape("https://a.example.com")
        second = await scraper.scrape("https://a.example.com")
        self.assertEqual(first, second)
        self.assertEqual(fetcher.calls, ["https://a.example.com"])

    async def test_failure_is_inline_and_cached(self):
        url = "https://broken.example.com"
        fetcher = FakeFetcher(failures={url})
        scraper = PageScraper(fetcher, self.cache)

        page = await scraper.scrape(url)
        self.assertEqual(page.error, "Scraping failed: RenderError")
        self.assertIsNone(page.title)
        self.assertEqual(page.body_text, "")
        self.assertEqual(page.h1, [])

        # Not retried for the rest of the day.
        await scraper.scrape(url)
        self.assertEqual(fetcher.calls, [url])

    async def test_failure_retried_next_day(self):
        url = "https://broken.example.com"
        fetcher = FakeFetcher(failures={url})
        scraper = PageScraper(fetcher, self.cache)
        await scraper.scrape(url)
        self.clock.next_day()
        fetcher.failures.clear()
        page = await scraper.scrape(url)
        self.assertIsNone(page.error)
        self.assertEqual(len(fetcher.calls), 2)

    async def test_scrape_all_keeps_order(self):
        urls = ["https://c.example.com", "https://a.example.com", "https://b.example.com"]
        fetcher = FakeFetcher(failures={"https://a.example.com"})
        entries = await PageScraper(fetcher, self.cache).scrape_all(urls)
        self.assertEqual([e.url for e in entries], urls)
        self.assertEqual([e.page.error is not None for e in entries], [False, True, False])


if __name__ == "__main__":
    unittest.main()
