"""
Shared REST Client for Provider Adapters

Every provider API client derives from ProviderAPIClient, which owns:
- The aiohttp ClientSession (opened/closed via async context manager)
- Per-provider throttling before each outbound request
- A bounded timeout on every request
- Conversion of every failure mode into FetchFailed

Unlike a general-purpose client this one never retries: one call, one request.
Failover between providers happens in the aggregator.

Usage:
    async with CoinGeckoAPIClient(throttle) as client:
        assets = await client.get_markets(page=1, limit=100)
"""

import asyncio
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import aiohttp

from core.logging import get_logger, log_api_request, log_api_response
from core.provider_interface import FetchFailed
from core.throttle import RateThrottle


class ProviderAPIClient:
    """
    Async HTTP GET client bound to one provider.

    Attributes:
        name: Provider name, used as the throttle key and in error messages
        base_url: Provider API root (no trailing slash)
        headers: Static headers sent with every request
        metadata_timeout: Timeout for list/detail/search calls (seconds)
        history_timeout: Timeout for chart calls (seconds)
        session: aiohttp ClientSession, set while the client is entered
    """

    name: str = ""

    def __init__(
        self,
        base_url: str,
        throttle: RateThrottle,
        headers: Optional[Dict[str, str]] = None,
        metadata_timeout: float = 10.0,
        history_timeout: float = 15.0
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.throttle = throttle
        self.headers = headers or {"Accept": "application/json"}
        self.metadata_timeout = metadata_timeout
        self.history_timeout = history_timeout
        self.session: Optional[aiohttp.ClientSession] = None
        self.logger = get_logger(self.__class__.__module__)

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self.logger.debug(f"{self.__class__.__name__} session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug(f"{self.__class__.__name__} session closed")

    # ============================================
    # HTTP Request Handler
    # ============================================

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> Any:
        """
        Throttle, then issue a single GET and decode the JSON body.

        Args:
            path: Endpoint path appended to base_url (e.g. "/coins/markets")
            params: Query parameters
            timeout: Total timeout in seconds (defaults to metadata_timeout)

        Returns:
            Decoded JSON payload

        Raises:
            FetchFailed: Session missing, non-2xx status, timeout, transport
                         error or undecodable body
        """
        if not self.session:
            raise FetchFailed(self.name, "client session not initialized")

        await self.throttle.acquire(self.name)

        url = f"{self.base_url}{path}"
        total = timeout if timeout is not None else self.metadata_timeout
        log_api_request(self.name, path, params)
        started = asyncio.get_running_loop().time()

        try:
            async with self.session.get(
                url,
                params=params,
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=total)
            ) as resp:
                if not 200 <= resp.status < 300:
                    text = await resp.text()
                    raise FetchFailed(self.name, f"HTTP {resp.status} on {path}: {text[:200]}", status=resp.status)
                data = await resp.json(content_type=None)
                log_api_response(self.name, path, resp.status, asyncio.get_running_loop().time() - started)
                return data
        except asyncio.TimeoutError as e:
            raise FetchFailed(self.name, f"Timeout after {total:.0f}s on {path}") from e
        except aiohttp.ClientError as e:
            raise FetchFailed(self.name, f"Request failed on {path}: {e}") from e
        except ValueError as e:
            raise FetchFailed(self.name, f"Invalid JSON from {path}: {e}") from e

    @contextmanager
    def parsing(self, path: str) -> Iterator[None]:
        """
        Convert schema mismatches in a provider payload into FetchFailed.

        Usage:
            with self.parsing("/coins/markets"):
                return [self._to_asset(item) for item in data]
        """
        try:
            yield
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise FetchFailed(self.name, f"Malformed payload from {path}: {e!r}") from e


def to_float(value: Any) -> Optional[float]:
    """
    Parse a numeric field that may arrive as a string, number or null.

    Example:
        >>> to_float("123.45"), to_float(None), to_float("")
        (123.45, None, None)
    """
    if value is None or value == "":
        return None
    return float(value)


def to_int(value: Any) -> Optional[int]:
    """Like to_float but for integer fields such as ranks ("1" -> 1)."""
    if value is None or value == "":
        return None
    return int(float(value))
