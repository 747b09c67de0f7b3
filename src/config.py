"""Configuration loading for the scrape pipeline."""

import copy
import logging
import os
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.yaml"

DEFAULTS: dict[str, Any] = {
    "llm": {
        "project_id": None,
        "region": "us-central1",
        "model": "gemini-2.0-flash",
        "temperature": 0.1,
        "max_output_tokens": 8192,
    },
    "search": {
        "api_key": None,
        "cse_id": None,
        "daily_limit": 90,
        "max_pages": 10,
        "timeout_seconds": 15,
    },
    "crawl": {
        "headless": True,
        "page_timeout_ms": 45000,
    },
    "pipeline": {
        "max_urls": 10,
        "max_tokens_per_chunk": 6000,
    },
    "store": {
        # Empty keeps quota and cache in memory for the life of the process.
        "path": ".cache/pipeline_store.db",
    },
    "export": {
        "output_path": "scraped_data.xlsx",
        "sheet_name": "Scraped Data",
    },
}

# (env var, section, key, type)
_ENV_OVERRIDES = [
    ("GCP_PROJECT_ID", "llm", "project_id", str),
    ("GCP_REGION", "llm", "region", str),
    ("GEMINI_MODEL", "llm", "model", str),
    ("GOOGLE_API_KEY", "search", "api_key", str),
    ("GOOGLE_CSE_ID", "search", "cse_id", str),
    ("SEARCH_DAILY_LIMIT", "search", "daily_limit", int),
]


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: str | None = None) -> dict[str, Any]:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to config YAML. Falls back to CONFIG_PATH env var,
                     then to config/config.yaml.

    Returns:
        Configuration dictionary with defaults filled in.
    """
    path = config_path or os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH)
    logger.info("Loading config from %s", path)

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return apply_env_overrides(_merge(DEFAULTS, data))


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Overlay credentials and deployment settings from the environment."""
    for env_var, section, key, cast in _ENV_OVERRIDES:
        value = os.environ.get(env_var)
        if value:
            try:
                config.setdefault(section, {})[key] = cast(value)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", env_var, value)
    return config


def default_config() -> dict[str, Any]:
    """Defaults plus environment overrides, for use without a config file."""
    return apply_env_overrides(copy.deepcopy(DEFAULTS))
