import time
import logging
from typing import Dict, Optional

import requests

from .config import Config
from .errors import FetchError
from .retry import RetryPolicy, linear_backoff


class HttpFetcher:
    """Retrying GET client for static HTML pages"""

    def __init__(self, config: Config, logger: logging.Logger,
                 session: Optional[requests.Session] = None,
                 sleep=time.sleep):
        self.config = config
        self.logger = logger
        self.session = session or requests.Session()
        self.retry_policy = RetryPolicy(
            max_attempts=config.max_retries,
            backoff=linear_backoff(config.retry_delay),
            retryable=lambda exc: isinstance(exc, requests.RequestException),
            sleep=sleep,
            logger=logger,
            label='GET',
        )

    def fetch_page(self, url: str, headers: Optional[Dict[str, str]] = None) -> str:
        """
        Fetch a page and return its decoded HTML.

        Raises:
            FetchError: after every attempt failed (network error or non-2xx)
        """
        request_headers = dict(self.config.request_headers)
        if headers:
            request_headers.update(headers)

        attempts = 0

        def attempt() -> str:
            nonlocal attempts
            attempts += 1
            response = self.session.get(url, headers=request_headers,
                                        timeout=self.config.request_timeout)
            response.raise_for_status()
            # Korean government sites often omit the charset header
            if not response.encoding or response.encoding.lower() == 'iso-8859-1':
                response.encoding = response.apparent_encoding
            return response.text

        try:
            html = self.retry_policy.call(attempt)
        except requests.RequestException as e:
            self.logger.error(f"All retry attempts failed for {url}: {e}")
            raise FetchError(url, attempts, e) from e

        self.logger.debug(f"Fetched {url} ({len(html)} chars)")
        return html

    def close(self):
        self.session.close()
