"""Outbound HTTP with one absolute deadline and exponential-backoff retries."""

import time
from typing import Callable

import requests

from .errors import TransportError
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="http_client")


def is_retryable_status(status_code: int) -> bool:
    """429 and every 5xx are worth another attempt."""
    return status_code == 429 or status_code >= 500


def backoff_delay(failed_attempt: int) -> float:
    """Seconds to wait after the 1-based ``failed_attempt`` (2s, then 4s, ...)."""
    return float(2 ** failed_attempt)


class ResilientHttpClient:
    """
    Thin wrapper over a ``requests.Session`` used by every provider client.

    A single deadline of ``timeout_seconds`` covers all attempts and the
    sleeps between them. Transport failures, 429 and 5xx are retried up to
    ``max_attempts`` in total. When attempts run out the last response is
    handed back with its status intact, or the last transport failure is
    raised as :class:`TransportError`; callers decide what a non-OK status
    means for them.
    """

    def __init__(
        self,
        timeout_seconds: float = 8.0,
        max_attempts: int = 3,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.timeout_seconds = float(timeout_seconds)
        self.max_attempts = max_attempts
        self.session = session or requests.Session()
        self._sleep = sleep
        self._clock = clock

    def get(self, url: str, **kwargs) -> requests.Response:
        return self.fetch("GET", url, **kwargs)

    def post(self, url: str, **kwargs) -> requests.Response:
        return self.fetch("POST", url, **kwargs)

    def fetch(self, method: str, url: str, *, read_timeout: float | None = None, **kwargs) -> requests.Response:
        """
        Issue ``method url`` with retries; ``kwargs`` go straight to ``Session.request``.

        ``read_timeout`` is for streamed bodies: the deadline still bounds the
        connect phase, but once bytes flow each socket read waits up to
        ``read_timeout`` instead of whatever budget happened to remain.
        """
        safe_url = mask_url(url)
        deadline = self._clock() + self.timeout_seconds
        response: requests.Response | None = None
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning("%s %s: deadline of %.1fs reached before attempt %d",
                               method, safe_url, self.timeout_seconds, attempt)
                break

            timeout = (remaining, read_timeout) if read_timeout is not None else remaining
            try:
                response = self.session.request(method, url, timeout=timeout, **kwargs)
            except requests.exceptions.RequestException as exc:
                response = None
                last_error = exc
                logger.warning("%s %s failed on attempt %d/%d: %s",
                               method, safe_url, attempt, self.max_attempts, type(exc).__name__)
            else:
                if not is_retryable_status(response.status_code):
                    return response
                logger.warning("%s %s returned HTTP %d on attempt %d/%d",
                               method, safe_url, response.status_code, attempt, self.max_attempts)

            if attempt == self.max_attempts:
                break
            delay = backoff_delay(attempt)
            if self._clock() + delay >= deadline:
                logger.warning("%s %s: not retrying, %.0fs backoff would pass the deadline",
                               method, safe_url, delay)
                break
            if response is not None:
                response.close()
            self._sleep(delay)

        if response is not None:
            return response
        if last_error is not None:
            raise TransportError(
                f"{method} {safe_url} failed: {type(last_error).__name__}"
            ) from last_error
        raise TransportError(f"{method} {safe_url} timed out after {self.timeout_seconds:.1f}s")
