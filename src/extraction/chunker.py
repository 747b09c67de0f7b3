"""Packs scraped pages into token-budgeted chunks for extraction calls.

Strategy:
1. Serialize each page into a fixed-field text block.
2. Estimate its cost as ceil(chars / 4) tokens.
3. Greedily fill chunks in input order while the running total, including
   the separators between blocks, stays within the budget.
4. A page that alone exceeds the budget gets a chunk of its own; pages
   are never dropped or split.
"""

import logging
import math

from src.models import PageEntry

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n---\n\n"
_CHARS_PER_TOKEN = 4


def format_page(entry: PageEntry) -> str:
    """Serialize one page into the block sent to the model."""
    page = entry.page
    return (
        f"URL: {entry.url}\n"
        f"TITLE: {page.title or ''}\n"
        f"META: {page.meta_description or ''}\n"
        f"TEXT: {page.body_text}"
    )


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / _CHARS_PER_TOKEN)


def split_pages(entries: list[PageEntry], max_tokens: int) -> list[list[PageEntry]]:
    """Split ``entries`` into chunks of at most ``max_tokens`` estimated tokens.

    Args:
        entries: Pages in scrape order.
        max_tokens: Soft per-chunk budget.

    Returns:
        Chunks whose concatenation equals ``entries``.
    """
    chunks: list[list[PageEntry]] = []
    current: list[PageEntry] = []
    current_tokens = 0

    separator_cost = estimate_tokens(PAGE_SEPARATOR)

    for entry in entries:
        cost = estimate_tokens(format_page(entry))
        if current and current_tokens + separator_cost + cost > max_tokens:
            chunks.append(current)
            current = []
            current_tokens = 0
        if cost > max_tokens:
            logger.debug("Page %s (%d tokens) exceeds chunk budget %d", entry.url, cost, max_tokens)
        if current:
            current_tokens += separator_cost
        current.append(entry)
        current_tokens += cost

    if current:
        chunks.append(current)

    logger.debug("Split %d pages into %d chunks (budget %d tokens)", len(entries), len(chunks), max_tokens)
    return chunks
