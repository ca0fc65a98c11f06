"""HTTP fetch with exponential backoff, User-Agent rotation and per-source rate limiting."""

import logging
import random
import threading
import time
from typing import Callable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger("job_ingestion.http")

DEFAULT_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
MAX_BACKOFF_SECONDS = 30.0
RETRYABLE_STATUS = 429

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
]


class FetchError(Exception):
    """Raised when a request could not be completed after all retries."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{message} ({url})")
        self.url = url
        self.status_code = status_code


def create_session(pool_size: int = 10, connect_retries: int = 2) -> requests.Session:
    """Create a requests session with browser-like default headers.

    The adapter only retries failed connections; status-based retries and
    backoff are handled by fetch_with_retry.
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=None,
        connect=connect_retries,
        read=0,
        status=0,
        backoff_factor=0.5,
        allowed_methods=["GET"],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy, pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "User-Agent": random.choice(USER_AGENTS),
        "Accept": "application/json, text/html;q=0.9, application/xml;q=0.8, */*;q=0.5",
        "Accept-Language": "en-US,en;q=0.9",
    })
    return session


def _should_retry(status_code: int) -> bool:
    return status_code == RETRYABLE_STATUS or status_code >= 500


def fetch_with_retry(
    url: str,
    session: Optional[requests.Session] = None,
    max_retries: int = DEFAULT_RETRIES,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    timeout: int = 30,
    sleep: Callable[[float], None] = time.sleep,
) -> requests.Response:
    """GET ``url``, retrying network errors, 429 and 5xx with exponential backoff.

    Backoff starts at 1s and doubles per attempt, capped at 30s. Any other
    status (2xx, 3xx, 404 and the rest of 4xx) is returned to the caller
    immediately. Raises FetchError once ``max_retries`` retries are used up.
    """
    if session is None:
        session = create_session()

    backoff = INITIAL_BACKOFF_SECONDS
    last_error = "request failed"
    last_status: Optional[int] = None

    for attempt in range(max_retries + 1):
        try:
            response = session.get(url, params=params, headers=headers, timeout=timeout)
        except requests.RequestException as e:
            last_error = f"{type(e).__name__}: {e}"
            last_status = None
            logger.warning("Attempt %d for %s failed: %s", attempt + 1, url, last_error)
        else:
            if not _should_retry(response.status_code):
                return response
            last_error = f"HTTP {response.status_code}: {response.reason}"
            last_status = response.status_code
            logger.warning("Attempt %d for %s returned %s", attempt + 1, url, last_error)

        if attempt < max_retries:
            sleep(backoff)
            backoff = min(backoff * 2, MAX_BACKOFF_SECONDS)

    raise FetchError(url, f"Giving up after {max_retries + 1} attempts: {last_error}", last_status)


def fetch_ok(
    url: str,
    session: Optional[requests.Session] = None,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> requests.Response:
    """Like fetch_with_retry, but any non-2xx answer raises FetchError."""
    response = fetch_with_retry(url, session=session, params=params, headers=headers, sleep=sleep)
    if not response.ok:
        raise FetchError(url, f"HTTP {response.status_code}: {response.reason}", response.status_code)
    return response


def fetch_json(
    url: str,
    session: Optional[requests.Session] = None,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """GET and decode a JSON body. Undecodable bodies raise FetchError."""
    response = fetch_ok(url, session=session, params=params, headers=headers, sleep=sleep)
    try:
        return response.json()
    except ValueError as e:
        raise FetchError(url, f"Invalid JSON response: {e}", response.status_code)


class RateLimiter:
    """In-process fixed-window rate limiter keyed by source identifier.

    One instance is owned by the orchestrator and handed to every connector.
    Buckets are process-local, which is fine for a single ingestion worker.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        # key -> [count, window_reset_at]
        self._buckets: dict[str, list[float]] = {}

    def acquire(self, key: str, window_seconds: float, max_per_window: int) -> float:
        """Block until ``key`` has capacity. Returns the seconds spent waiting."""
        waited = 0.0
        while True:
            with self._lock:
                now = self._clock()
                bucket = self._buckets.get(key)
                if bucket is None or now >= bucket[1]:
                    bucket = [0, now + window_seconds]
                    self._buckets[key] = bucket
                if bucket[0] < max_per_window:
                    bucket[0] += 1
                    return waited
                wait = bucket[1] - now

            logger.debug("Rate limit for %s reached, waiting %.2fs", key, wait)
            self._sleep(wait)
            waited += wait

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._buckets.clear()
            else:
                self._buckets.pop(key, None)
