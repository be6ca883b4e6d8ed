"""Error taxonomy for the crawl / extract / enrich pipeline."""

from typing import Optional


class ScraperError(Exception):
    """Base class for pipeline errors"""


class FetchError(ScraperError):
    """Network failure or non-2xx response after all retries were used"""

    def __init__(self, url: str, attempts: int, cause: Optional[BaseException] = None):
        self.url = url
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"GET {url} failed after {attempts} attempt(s): {cause}")


class ParseError(ScraperError):
    """Page structure did not match what an extractor expected"""


class RenderError(ScraperError):
    """Browser navigation, viewer lookup or screenshot failure"""


class ExtractionError(ScraperError):
    """LLM call or response parsing failure"""


class StoreError(ScraperError):
    """Persistence sink could not be read or written"""
