"""Chunk-by-chunk structured extraction with one-shot JSON repair.

Each chunk is processed independently; a chunk that cannot be turned into
valid JSON is recorded as an inline error marker and the remaining chunks
are still attempted. Only a configuration error aborts the stage.
"""

import logging
from typing import Any

from src.errors import ConfigurationError, ModelOutputError
from src.extraction.chunker import PAGE_SEPARATOR, format_page
from src.llm.client import CompletionModel, parse_json_response
from src.llm.prompts import build_extraction_prompt, build_repair_prompt
from src.models import ChunkResult, PageEntry

logger = logging.getLogger(__name__)


def chunk_error(index: int) -> str:
    return f"Failed to process chunk {index}"


class Extractor:
    """Converts chunks of scraped pages into JSON records."""

    def __init__(self, llm: CompletionModel):
        self.llm = llm

    async def repair(self, bad_output: str, error: str) -> Any:
        """Ask the model to fix ``bad_output`` and parse the reply once.

        Raises:
            ModelOutputError: If the repaired output is still not JSON.
        """
        fixed = await self.llm.complete(build_repair_prompt(bad_output, error))
        return parse_json_response(fixed)

    async def extract_chunk(
        self, extraction_prompt: str, chunk: list[PageEntry], index: int
    ) -> ChunkResult:
        """Extract records from one chunk.

        Never raises for model or parse failures; those produce a
        ``ChunkResult`` with ``error`` set.

        Raises:
            ConfigurationError: If the model client is not configured.
        """
        content = PAGE_SEPARATOR.join(format_page(entry) for entry in chunk)
        prompt = build_extraction_prompt(extraction_prompt, content)

        try:
            raw = await self.llm.complete(prompt)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error("Extraction call failed for chunk %d: %s", index, e)
            return ChunkResult(index=index, error=chunk_error(index))

        try:
            value = parse_json_response(raw)
        except ModelOutputError as e:
            logger.warning("Chunk %d returned malformed JSON, attempting repair: %s", index, e)
            try:
                value = await self.repair(raw, str(e))
            except ConfigurationError:
                raise
            except Exception as repair_error:
                logger.error("Repair failed for chunk %d: %s", index, repair_error)
                return ChunkResult(index=index, error=chunk_error(index))

        logger.debug("Chunk %d extracted (%d pages)", index, len(chunk))
        return ChunkResult(index=index, value=value)

    async def extract_all(
        self, extraction_prompt: str, chunks: list[list[PageEntry]]
    ) -> list[ChunkResult]:
        """Extract every chunk sequentially, preserving order."""
        results = []
        for index, chunk in enumerate(chunks):
            logger.info("Extracting chunk %d/%d (%d pages)", index + 1, len(chunks), len(chunk))
            results.append(await self.extract_chunk(extraction_prompt, chunk, index))
        failed = sum(1 for r in results if not r.ok)
        logger.info("Extraction complete: %d chunks, %d failed", len(results), failed)
        return results
