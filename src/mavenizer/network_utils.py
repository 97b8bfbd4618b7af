from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from mavenizer.__version__ import __version__

T = TypeVar("T")

logger = logging.getLogger(__name__)


def is_retryable_http_exception(exc: Exception, retry_on_429: bool = True) -> bool:
    """Check if an exception raised by a repository request is worth retrying.

    Server errors (5xx), 429 and transport level failures are retried. Client
    errors such as 401/403/404 are final: an artifact missing from a repository
    does not appear by asking again.
    """
    if isinstance(exc, requests.exceptions.HTTPError):
        status_code = exc.response.status_code if exc.response is not None else None
        if status_code is None:
            return False
        if status_code >= 500:
            return True
        return status_code == 429 and retry_on_429
    return isinstance(
        exc,
        (
            requests.exceptions.ConnectionError,
            requests.exceptions.Timeout,
            requests.exceptions.ChunkedEncodingError,
            requests.exceptions.ContentDecodingError,
        ),
    )


def with_retries(
    fn: Callable[[], T],
    *,
    max_attempts: int = 3,
    backoff_base: float = 2.0,
    backoff_max: float = 30.0,
    on_retry: Callable[[int, Exception], None] | None = None,
    retry_on_429: bool = True,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Execute ``fn`` with exponential backoff on retryable HTTP failures.

    Args:
        fn: The function to execute
        max_attempts: Maximum number of attempts
        backoff_base: Base for exponential backoff (seconds)
        backoff_max: Maximum backoff time (seconds)
        on_retry: Optional callback called on each retry with (attempt_num, exception)
        retry_on_429: Whether to retry on HTTP 429 Too Many Requests
        sleep: Sleep function, replaceable in tests

    Returns:
        The result of fn()

    Raises:
        Exception: The last exception if all retries fail
    """
    attempts = max(1, max_attempts)
    for attempt in range(attempts):
        try:
            return fn()
        except Exception as exc:
            if not is_retryable_http_exception(exc, retry_on_429=retry_on_429) or attempt >= attempts - 1:
                raise
            if on_retry:
                on_retry(attempt + 1, exc)
            else:
                logger.debug("Retrying after %s (attempt %d/%d)", exc, attempt + 1, attempts)
            sleep(min(backoff_base**attempt, backoff_max))
    raise RuntimeError("unreachable")


DEFAULT_RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


def build_user_agent() -> str:
    return f"mavenizer/{__version__}"


def create_retry_session(
    *,
    total_retries: int = 3,
    backoff_factor: float = 0.5,
    status_forcelist: set[int] | None = None,
) -> requests.Session:
    """Create a requests session with status-level retry/backoff handling."""
    status_list = status_forcelist or DEFAULT_RETRY_STATUS_CODES
    retries = Retry(
        total=total_retries,
        backoff_factor=backoff_factor,
        status_forcelist=list(status_list),
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
    )
    session = requests.Session()
    session.headers["User-Agent"] = build_user_agent()
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
