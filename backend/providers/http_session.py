"""HTTP session with retry logic, backoff, and rate-limit awareness.

Provides a requests.Session subclass that applies a default timeout,
retries transient failures and maps auth/rate-limit responses to
provider exceptions.
"""

import logging
import time

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from providers.base import (
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "4subs v0.1.0"


def create_session(
    max_retries: int = 2,
    backoff_factor: float = 0.5,
    timeout: int = 20,
    user_agent: str = DEFAULT_USER_AGENT,
) -> "RetryingSession":
    """Create a configured RetryingSession."""
    session = RetryingSession(timeout=timeout)
    session.headers["User-Agent"] = user_agent

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET", "POST"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session


class RetryingSession(requests.Session):
    """Session with default timeout and rate-limit awareness.

    Network failures surface as ProviderError/ProviderTimeoutError so the
    search orchestrator records them against the provider.
    """

    def __init__(self, timeout: int = 20):
        super().__init__()
        self.default_timeout = timeout
        self._rate_limit_until: float | None = None

    def request(self, method, url, **kwargs):
        if "timeout" not in kwargs:
            kwargs["timeout"] = self.default_timeout

        # Fail fast instead of sleeping: the caller runs under a deadline
        if self._rate_limit_until and time.time() < self._rate_limit_until:
            wait = self._rate_limit_until - time.time()
            raise ProviderRateLimitError(f"Rate limited, retry in {wait:.0f}s")

        try:
            resp = super().request(method, url, **kwargs)
        except requests.Timeout as e:
            logger.warning("Timeout for %s %s", method, _strip_query(url))
            raise ProviderTimeoutError(f"request timed out: {_strip_query(url)}") from e
        except requests.RequestException as e:
            logger.warning("Request error for %s %s: %s", method, _strip_query(url), type(e).__name__)
            raise ProviderError(f"request failed: {_strip_query(url)}: {type(e).__name__}") from e

        if resp.status_code == 429:
            retry_after = resp.headers.get("Retry-After")
            try:
                wait_seconds = int(retry_after) if retry_after else 60
            except ValueError:
                wait_seconds = 60
            self._rate_limit_until = time.time() + wait_seconds
            logger.warning("Rate limited by %s, backing off %ds", _strip_query(url), wait_seconds)
            raise ProviderRateLimitError(
                f"Rate limited by {_strip_query(url)}, retry after {wait_seconds}s"
            )

        if resp.status_code in (401, 403):
            raise ProviderAuthError(
                f"Authentication failed for {_strip_query(url)}: HTTP {resp.status_code}"
            )

        return resp


def _strip_query(url: str) -> str:
    """Drop the query string; some catalogs pass tokens as parameters."""
    return url.split("?", 1)[0]


def raise_for_status(resp, what: str) -> None:
    """Raise ProviderError with a short body excerpt for any non-200 response."""
    if resp.status_code != 200:
        body = (resp.text or "")[:2048].strip()
        raise ProviderError(f"{what} failed: {resp.status_code} {body}".strip())
