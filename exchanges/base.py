"""
Base REST Client for Market-Data Providers

Shared plumbing for the provider clients:
- aiohttp session lifecycle (own session or a shared one)
- bounded connect/read timeouts on every request
- a single GET attempt per call (no retries; the refresh caller decides
  what to do with a failure)
- mapping of transport failures to ProviderError and of undecodable bodies
  to ParseError

Usage:
    async with MoexAPIClient() as client:
        row = await client.fetch_current_session(USD_RUB)

    # or share one session between clients
    async with aiohttp.ClientSession() as session:
        moex = MoexAPIClient(session=session)
        bybit = BybitAPIClient(session=session)
"""

import asyncio
from time import monotonic
from typing import Any, Dict, Optional

import aiohttp

from core.config import settings
from core.errors import ParseError, ProviderError
from core.logging import get_logger, log_api_request, log_api_response


def build_timeout(connect_timeout: Optional[float] = None, read_timeout: Optional[float] = None) -> aiohttp.ClientTimeout:
    """
    Request timeout with separate connect and read bounds (10s each by default).
    """
    return aiohttp.ClientTimeout(
        sock_connect=connect_timeout if connect_timeout is not None else settings.connect_timeout,
        sock_read=read_timeout if read_timeout is not None else settings.read_timeout,
    )


class BaseAPIClient:
    """
    Async HTTP client base for a single provider.

    Attributes:
        name: Provider identifier used in logs and errors
        base_url: Provider base URL
        timeout: aiohttp timeout applied to every request
        session: aiohttp ClientSession (owned or shared)

    Notes:
        - A client created without a session opens one in __aenter__ and
          closes it in __aexit__
        - A client given a session never closes it
    """

    name: str = "provider"

    def __init__(
        self,
        base_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or build_timeout()
        self.session = session
        self._owns_session = session is None
        self.logger = get_logger(f"exchanges.{self.name}")

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
            self.logger.debug(f"{self.__class__.__name__} session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self.session and self._owns_session:
            await self.session.close()
            self.logger.debug(f"{self.__class__.__name__} session closed")
            self.session = None

    # ============================================
    # HTTP Request Handler
    # ============================================

    async def _get(self, endpoint: str, params: Dict[str, Any] = None) -> Any:
        """
        Make one GET request and return the decoded JSON body.

        Args:
            endpoint: Path relative to base_url
            params: Query parameters

        Returns:
            Decoded JSON payload

        Raises:
            ProviderError: Connection failure, timeout or non-200 status
            ParseError: Body is not valid JSON
        """
        if self.session is None:
            raise ProviderError(self.name, "client session is not open")

        url = f"{self.base_url}{endpoint}"
        params = params or {}
        log_api_request(self.name, endpoint, params)

        start = monotonic()
        try:
            async with self.session.get(url, params=params, timeout=self.timeout) as response:
                if response.status != 200:
                    body = await response.text(errors="replace")
                    raise ProviderError(self.name, f"GET {endpoint} failed: {body[:200]}", status=response.status)
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise ParseError(f"{self.name}: GET {endpoint} returned malformed JSON: {e}") from e
                log_api_response(self.name, endpoint, response.status, monotonic() - start)
        except asyncio.TimeoutError as e:
            self.logger.error(f"{self.name} request timed out: {endpoint}")
            raise ProviderError(self.name, f"GET {endpoint} timed out") from e
        except aiohttp.ClientError as e:
            self.logger.error(f"{self.name} request failed: {endpoint}: {e}")
            raise ProviderError(self.name, f"GET {endpoint} failed: {e}") from e

        if data is None:
            raise ParseError(f"{self.name}: GET {endpoint} returned an empty body")
        return data
