"""Retry policy for failed request sends.

A failed send is retried with a fixed backoff until ``max_retries`` retries
have been spent; the next failure after that is terminal for the exchange.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_BACKOFF_MS = 1000


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    attempt: int
    delay_ms: int = 0


class RetryController:
    def __init__(self, max_retries: int = 3, backoff_ms: int = DEFAULT_BACKOFF_MS):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.backoff_ms = backoff_ms

    def on_failure(self, retry_count: int) -> RetryDecision:
        """Decide what to do after a failure, given retries already spent."""
        if retry_count < self.max_retries:
            return RetryDecision(retry=True, attempt=retry_count + 1, delay_ms=self.backoff_ms)
        return RetryDecision(retry=False, attempt=retry_count)
