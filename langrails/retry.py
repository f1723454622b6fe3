"""Retrying wrapper around a provider with exponential backoff."""

from __future__ import annotations

import threading
import time
from typing import Iterator, Optional

from .core import APIError, CompletionRequest, CompletionResponse, Provider, StreamEvent


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, APIError) and exc.is_retryable()


class RetryProvider(Provider):
    """Wrap a provider and retry rate-limit and server errors.

    ``max_retries`` counts retries beyond the first attempt; the delay
    before retry ``n`` (from 0) is ``base_delay * 2 ** n`` seconds.
    """

    def __init__(self, inner: Provider, max_retries: int, base_delay: float = 1.0) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        self.inner = inner
        self.max_retries = max_retries
        self.base_delay = base_delay

    def complete(
        self,
        request: CompletionRequest,
        cancel: Optional[threading.Event] = None,
    ) -> CompletionResponse:
        """Send a completion request, retrying retryable failures."""
        return self._attempt(lambda: self.inner.complete(request), cancel)

    def stream(
        self,
        request: CompletionRequest,
        cancel: Optional[threading.Event] = None,
    ) -> Iterator[StreamEvent]:
        """Open a stream, retrying only the initial connection."""
        return self._attempt(lambda: self.inner.stream(request), cancel)

    def _attempt(self, call, cancel: Optional[threading.Event]):
        for attempt in range(self.max_retries + 1):
            try:
                return call()
            except Exception as exc:
                if not _is_retryable(exc) or attempt == self.max_retries:
                    raise
                if not self._sleep(attempt, cancel):
                    raise
        raise AssertionError("unreachable")

    def _sleep(self, attempt: int, cancel: Optional[threading.Event]) -> bool:
        """Wait before the next attempt; False if cancelled."""
        delay = self.base_delay * (2**attempt)
        if cancel is None:
            time.sleep(delay)
            return True
        if cancel.is_set():
            return False
        return not cancel.wait(delay)


def with_retry(provider: Provider, max_retries: int, base_delay: float = 1.0) -> RetryProvider:
    """Wrap ``provider`` with retry logic."""
    return RetryProvider(provider, max_retries, base_delay)