"""Tests for token-budgeted page chunking."""

import unittest

from src.extraction.chunker import PAGE_SEPARATOR, estimate_tokens, format_page, split_pages
from src.models import PageEntry, ScrapedPage


def _entry(url: str, body_chars: int) -> PageEntry:
    return PageEntry(url=url, page=ScrapedPage(url=url, title="T", body_text="x" * body_chars))


def _sent_tokens(chunk: list[PageEntry]) -> int:
    return estimate_tokens(PAGE_SEPARATOR.join(format_page(e) for e in chunk))


class TestEstimateTokens(unittest.TestCase):

    def test_rounds_up(self):
        self.assertEqual(estimate_tokens(""), 0)
        self.assertEqual(estimate_tokens("abcd"), 1)
        self.assertEqual(estimate_tokens("abcde"), 2)


class TestFormatPage(unittest.TestCase):

    def test_fixed_fields(self):
        entry = PageEntry(
            url="https://a.example.com",
            page=ScrapedPage(url="https://a.example.com", title="A", body_text="hello"),
        )
        self.assertEqual(
            format_page(entry),
            "URL: https://a.example.com\nTITLE: A\nMETA: \nTEXT: hello",
        )


class TestSplitPages(unittest.TestCase):

    def test_empty_input(self):
        self.assertEqual(split_pages([], max_tokens=100), [])

    def test_small_pages_share_a_chunk(self):
        entries = [_entry(f"https://{i}.example.com", 40) for i in range(3)]
        chunks = split_pages(entries, max_tokens=1000)
        self.assertEqual(len(chunks), 1)
        self.assertEqual(chunks[0], entries)

    def test_budget_respected(self):
        entries = [_entry(f"https://{i}.example.com", 400) for i in range(10)]
        budget = 300
        chunks = split_pages(entries, max_tokens=budget)
        self.assertGreater(len(chunks), 1)
        for chunk in chunks:
            self.assertLessEqual(_sent_tokens(chunk), budget)

    def test_separator_counts_against_budget(self):
        # Each block is 100 chars (25 tokens); the separator adds 2.
        a = _entry("https://a.example.com", 51)
        b = _entry("https://b.example.com", 51)
        self.assertEqual(estimate_tokens(format_page(a)), 25)
        self.assertEqual(split_pages([a, b], max_tokens=51), [[a], [b]])
        self.assertEqual(split_pages([a, b], max_tokens=52), [[a, b]])

    def test_oversized_page_gets_own_chunk(self):
        small_a = _entry("https://a.example.com", 40)
        huge = _entry("https://huge.example.com", 10000)
        small_b = _entry("https://b.example.com", 40)
        chunks = split_pages([small_a, huge, small_b], max_tokens=100)
        self.assertEqual(chunks, [[small_a], [huge], [small_b]])

    def test_concatenation_reconstructs_input(self):
        sizes = [10, 900, 50, 3000, 20, 20, 700, 5]
        entries = [_entry(f"https://{i}.example.com", n) for i, n in enumerate(sizes)]
        chunks = split_pages(entries, max_tokens=250)
        flattened = [entry for chunk in chunks for entry in chunk]
        self.assertEqual(flattened, entries)
        for chunk in chunks:
            if len(chunk) > 1:
                self.assertLessEqual(_sent_tokens(chunk), 250)


if __name__ == "__main__":
    unittest.main()
