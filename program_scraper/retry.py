"""Reusable retry policy shared by the HTTP fetcher and browser navigation."""

import time
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from tenacity import Retrying, RetryCallState, retry_if_exception, stop_after_attempt


def linear_backoff(unit: float) -> Callable[[int], float]:
    """Wait unit * attempt seconds after the given failed attempt"""
    return lambda attempt: unit * attempt


def fixed_backoff(seconds: float) -> Callable[[int], float]:
    return lambda attempt: seconds


def always_retry(exc: BaseException) -> bool:
    return True


@dataclass
class RetryPolicy:
    """
    Retry a call up to max_attempts times.

    backoff maps the number of the attempt that just failed (1-based) to a
    wait in seconds; retryable decides whether an exception is worth another
    attempt. The last exception is re-raised unchanged.
    """

    max_attempts: int = 3
    backoff: Callable[[int], float] = linear_backoff(2.0)
    retryable: Callable[[BaseException], bool] = always_retry
    sleep: Callable[[float], None] = time.sleep
    logger: Optional[logging.Logger] = None
    label: str = 'call'

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.backoff(retry_state.attempt_number)

    def _before_sleep(self, retry_state: RetryCallState):
        if not self.logger:
            return
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        self.logger.warning(
            f"{self.label} attempt {retry_state.attempt_number}/{self.max_attempts} failed: {exc}. "
            f"Retrying in {self._wait(retry_state):.1f}s..."
        )

    def call(self, func: Callable, *args, **kwargs):
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(self.retryable),
            sleep=self.sleep,
            before_sleep=self._before_sleep,
            reraise=True,
        )
        return retrying(func, *args, **kwargs)
