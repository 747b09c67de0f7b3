"""Exception types raised by the pipeline.

Fatal errors abort a run and reach the caller. Per-URL scrape failures and
per-chunk extraction failures are recorded inline instead of being raised.
"""


class PipelineError(Exception):
    """Base class for errors that abort a pipeline run."""


class ConfigurationError(PipelineError):
    """A required credential or setting is missing."""


class QuotaExceeded(PipelineError):
    """The daily search budget is used up. Retry after UTC midnight."""


class PlanningFailed(PipelineError):
    """The language model did not produce a usable plan."""


class NoURLsFound(PipelineError):
    """The search stage yielded no candidate URLs."""


class SearchBackendError(Exception):
    """A search API call failed or returned an unreadable response."""


class RenderError(Exception):
    """The headless browser could not load or render a page."""


class ModelOutputError(Exception):
    """Language model output could not be parsed as JSON."""
