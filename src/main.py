"""CLI entry point for the scrape pipeline.

Usage:
    python -m src.main "list coffee shops in Austin" [-o out.xlsx] [--config path] [-v]
    python -m src.main --quota
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from src.config import DEFAULT_CONFIG_PATH, default_config, load_config
from src.errors import PipelineError, QuotaExceeded
from src.export.spreadsheet import flatten_results, write_workbook
from src.orchestrator import get_quota_status, run_pipeline


def _load(config_path: str | None) -> dict:
    # Run on defaults + environment when no config file is given or present.
    if config_path is None and "CONFIG_PATH" not in os.environ and not os.path.exists(DEFAULT_CONFIG_PATH):
        return default_config()
    return load_config(config_path)


async def _run(args: argparse.Namespace, config: dict) -> int:
    logger = logging.getLogger(__name__)

    if args.quota:
        status = await get_quota_status(config)
        print(json.dumps(status.to_dict()))
        return 0

    result = await run_pipeline(config, args.prompt)
    records = flatten_results(result.results)
    output = args.output or config["export"]["output_path"]
    write_workbook(records, output, sheet_name=config["export"].get("sheet_name", "Scraped Data"))

    failed_pages = sum(1 for page in result.pages if page.error)
    failed_chunks = sum(1 for value in result.results if isinstance(value, dict) and "error" in value)
    logger.info(
        "Search query: %s | pages: %d (%d failed) | chunks: %d (%d failed) | records: %d",
        result.plan.search_query, len(result.pages), failed_pages,
        len(result.results), failed_chunks, len(records),
    )
    print(output)
    return 0


def main() -> None:
    """Parse arguments and run the pipeline."""
    parser = argparse.ArgumentParser(
        description="LLM-planned web scraper: plan, search, scrape, extract, export to XLSX",
    )
    parser.add_argument("prompt", nargs="?", help="What to scrape, in plain language")
    parser.add_argument(
        "-o", "--output",
        help="Path of the XLSX file to write (default: export.output_path)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to configuration YAML (default: config/config.yaml if present)",
    )
    parser.add_argument(
        "--quota",
        action="store_true",
        help="Print today's search quota usage and exit",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    args = parser.parse_args()
    if not args.quota and not args.prompt:
        parser.error("a prompt is required unless --quota is given")

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)

    try:
        config = _load(args.config)
        sys.exit(asyncio.run(_run(args, config)))
    except FileNotFoundError as e:
        logger.error("Configuration file not found: %s", e)
        sys.exit(1)
    except QuotaExceeded as e:
        logger.error("Daily search limit reached, try again after UTC midnight: %s", e)
        sys.exit(2)
    except PipelineError as e:
        logger.error("Pipeline failed: %s: %s", type(e).__name__, e)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Pipeline interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error("Pipeline failed: %s", e, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
