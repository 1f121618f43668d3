"""Shared HTTP plumbing for provider adapters.

Every outbound request goes through the adapter's own RateLimiter, then its
RetryPolicy, then a single httpx GET:

    limiter.execute(-> retry_with_backoff(-> client.get(...)))

Subclasses only describe endpoints and map payloads to TokenRecord.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar

import httpx

from ..errors import SourceConnectionError, SourceError, SourceHTTPError
from ..interface import TokenSource
from ..rate_limiter import RateLimiter
from ..retry import DEFAULT_RETRY_POLICY, RetryPolicy, retry_with_backoff

logger = logging.getLogger(__name__)


class HttpTokenSource(TokenSource):
    """Base class for adapters backed by a JSON REST API.

    :cvar DEFAULT_BASE_URL: Provider root used when none is configured.
    :cvar DEFAULT_RATE_LIMIT: Requests per second when none is configured.
    :cvar DEFAULT_TIMEOUT: Request timeout in seconds.
    :cvar SOL_PRICE_USD: Fixed USD/SOL rate used to convert USD figures.
    """

    DEFAULT_BASE_URL: ClassVar[str] = ""
    DEFAULT_RATE_LIMIT: ClassVar[float] = 10.0
    DEFAULT_TIMEOUT: ClassVar[float] = 15.0
    SOL_PRICE_USD: ClassVar[float] = 150.0

    def __init__(
        self,
        *,
        base_url: str | None = None,
        rate_limit: float | None = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.retry_policy = retry_policy
        self.rate_limiter = RateLimiter(rate_limit or self.DEFAULT_RATE_LIMIT)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            headers={"Accept": "application/json", "User-Agent": "tokenfeed/0.1"},
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    # --- Request path ---

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Rate-limited, retried GET returning the decoded JSON body."""
        return await self.rate_limiter.execute(
            lambda: retry_with_backoff(lambda: self._fetch(path, params), self.retry_policy)
        )

    async def _fetch(self, path: str, params: dict[str, Any] | None) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise SourceError(f"[{self.name}] request timeout: {e}") from e
        except (httpx.NetworkError, httpx.RemoteProtocolError) as e:
            raise SourceConnectionError(f"[{self.name}] connection failed: {e}") from e
        except httpx.RequestError as e:
            raise SourceError(f"[{self.name}] request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "[%s] GET %s failed with status %s: %s",
                self.name,
                path,
                response.status_code,
                response.text[:200],
            )
            raise SourceHTTPError(response.status_code, response.text[:200])

        try:
            return response.json()
        except ValueError as e:
            raise SourceError(f"[{self.name}] invalid JSON from {path}") from e

    # --- Normalization helpers ---

    @classmethod
    def usd_to_sol(cls, value: Any) -> float:
        """Convert a USD amount with the adapter's fixed rate. Clamped at zero."""
        return non_negative(to_float(value)) / cls.SOL_PRICE_USD


def to_float(value: Any, default: float = 0.0) -> float:
    """Parse provider numbers, which arrive as numbers, strings or null."""
    if value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if result != result:  # NaN
        return default
    return result


def to_int(value: Any, default: int = 0) -> int:
    return int(to_float(value, default))


def non_negative(value: float) -> float:
    return value if value > 0 else 0.0


def dig(data: Any, *keys: str) -> Any:
    """Walk nested dicts, returning None as soon as a level is missing."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def count_transactions(window: Any) -> int:
    """buys + sells of a provider transaction window, never negative."""
    buys = to_int(dig(window, "buys"))
    sells = to_int(dig(window, "sells"))
    return max(buys, 0) + max(sells, 0)
