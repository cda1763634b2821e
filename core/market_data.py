"""
Market Data Client - Provider Registry and Facade

This module provides the single entry point the pair catalog uses to reach
market-data providers. It owns one aiohttp session shared by every provider
client and routes each request to the provider named by the pair.

Architecture Pattern:
    Registry/Facade:
    - MarketDataClient keeps a registry {"moex": MoexAPIClient, "bybit": BybitAPIClient}
    - Callers pass a CurrencyPair; the pair's kind selects the provider
    - Provider clients do the HTTP work and the payload normalization

Networking contract:
    - Every request uses bounded connect/read timeouts (10s each by default)
    - No automatic retry: a failed fetch fails the refresh cycle, and the
      quote cache decides whether to keep serving the previous snapshot

Example Usage:
    async with MarketDataClient() as client:
        session = await client.fetch_current_session(USD_RUB)
        window = await client.fetch_history_window(USD_RUB, date(2023, 6, 9), date(2023, 6, 15))
        ticker = await client.fetch_spot_ticker(BTC_USDT)
"""

from datetime import date
from typing import Any, Dict, List, Optional

import aiohttp

from core.errors import ConfigError
from core.logging import logger
from core.schemas import CurrencyPair


class MarketDataClient:
    """
    Central facade over the provider clients.

    Attributes:
        providers: Dictionary mapping provider ids to client instances
        timeout: aiohttp timeout shared by all provider requests

    Example:
        >>> client = MarketDataClient()
        >>> await client.open()
        >>> row = await client.fetch_current_session(USD_RUB)
        >>> await client.close()
    """

    def __init__(
        self,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        providers: Optional[Dict[str, Any]] = None
    ):
        """
        Create the provider registry.

        Args:
            connect_timeout: Override of settings.connect_timeout
            read_timeout: Override of settings.read_timeout
            providers: Prebuilt provider clients (tests inject fakes here)

        Note:
            Provider clients are created without a session; open() creates
            the shared session and hands it to each of them.
        """
        # Provider modules import core, so they are imported here
        from exchanges.base import build_timeout
        from exchanges.bybit import BybitAPIClient
        from exchanges.moex import MoexAPIClient

        self.timeout = build_timeout(connect_timeout, read_timeout)
        self.session: Optional[aiohttp.ClientSession] = None

        self.providers: Dict[str, Any] = providers if providers is not None else {
            "moex": MoexAPIClient(timeout=self.timeout),
            "bybit": BybitAPIClient(timeout=self.timeout),
        }

        logger.info(f"MarketDataClient initialized with provider(s): {', '.join(self.providers.keys())}")

    # ============================================
    # Lifecycle Management
    # ============================================

    async def open(self) -> None:
        """Create the shared HTTP session and attach it to every provider client."""
        if self.session is not None:
            return
        self.session = aiohttp.ClientSession(timeout=self.timeout)
        for client in self.providers.values():
            if hasattr(client, "session"):
                client.session = self.session
                client._owns_session = False
        logger.debug("MarketDataClient session opened")

    async def close(self) -> None:
        """Close the shared HTTP session."""
        if self.session is None:
            return
        await self.session.close()
        for client in self.providers.values():
            if hasattr(client, "session"):
                client.session = None
        self.session = None
        logger.debug("MarketDataClient session closed")

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ============================================
    # Provider Routing
    # ============================================

    def get_provider(self, pair: CurrencyPair) -> Any:
        """
        Get the provider client responsible for a pair.

        Raises:
            ConfigError: If the pair is derived or its provider is not registered
        """
        if pair.provider is None:
            raise ConfigError(f"Derived pair {pair.name} has no provider to fetch from")

        client = self.providers.get(pair.provider)
        if client is None:
            available = ", ".join(self.providers.keys())
            raise ConfigError(
                f"Provider '{pair.provider}' for {pair.name} is not registered. "
                f"Available providers: {available}"
            )
        return client

    def list_providers(self) -> List[str]:
        return list(self.providers.keys())

    # ============================================
    # Fetch Operations
    # ============================================

    async def fetch_current_session(self, pair: CurrencyPair) -> Dict[str, Any]:
        """Current/last session market data of an exchange-session pair as column -> value."""
        return await self.get_provider(pair).fetch_current_session(pair)

    async def fetch_history_window(self, pair: CurrencyPair, from_date: date, till_date: date) -> List[Dict[str, Any]]:
        """Session results in [from_date, till_date], newest first."""
        return await self.get_provider(pair).fetch_history_window(pair, from_date, till_date)

    async def fetch_spot_ticker(self, pair: CurrencyPair) -> Dict[str, Any]:
        """Single-row spot ticker of a pair."""
        return await self.get_provider(pair).fetch_spot_ticker(pair)
