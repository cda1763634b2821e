"""
Bybit REST API Client

This module provides an async HTTP client for the Bybit v5 market API.
It handles:
- Spot ticker requests
- Bybit envelope checks (retCode / retMsg)
- Error handling and logging

API Documentation:
    https://bybit-exchange.github.io/docs/v5/market/tickers

Response shape:
    {"retCode": 0, "retMsg": "OK",
     "result": {"category": "spot",
                "list": [{"symbol": "BTCUSDT", "lastPrice": "67012.5", ...}]},
     "time": 1718000000000}

Usage:
    async with BybitAPIClient() as client:
        ticker = await client.fetch_spot_ticker(BTC_USDT)
        print(ticker["lastPrice"])
"""

from typing import Any, Dict, Optional

import aiohttp

from core.config import settings
from core.errors import ParseError, ProviderError
from core.schemas import CurrencyPair
from exchanges.base import BaseAPIClient


class BybitAPIClient(BaseAPIClient):
    """
    Async HTTP client for Bybit spot market data

    Example:
        >>> async with BybitAPIClient() as client:
        ...     ticker = await client.fetch_spot_ticker(BTC_USDT)

    Notes:
        - Spot tickers always carry a last price, there is no session fallback
        - A non-zero retCode is a provider-level error (unknown symbol, etc.)
    """

    name = "bybit"

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None
    ):
        super().__init__(base_url or settings.bybit_base_url, session=session, timeout=timeout)

    async def _get_result(self, endpoint: str, params: Dict[str, Any] = None) -> Dict[str, Any]:
        """
        GET a v5 endpoint and unwrap the "result" object.

        Raises:
            ProviderError: HTTP failure or non-zero retCode
            ParseError: Envelope without a result object
        """
        data = await self._get(endpoint, params)

        if not isinstance(data, dict):
            raise ParseError(f"bybit: expected a JSON object from {endpoint}")

        if data.get("retCode") != 0:
            error_msg = data.get("retMsg", "Unknown error")
            raise ProviderError(self.name, f"API error {data.get('retCode')}: {error_msg}")

        result = data.get("result")
        if not isinstance(result, dict):
            raise ParseError(f"bybit: response from {endpoint} has no result object")
        return result

    # ============================================
    # Market Data Methods
    # ============================================

    async def fetch_spot_ticker(self, pair: CurrencyPair) -> Dict[str, Any]:
        """
        Fetch the spot ticker of a pair.

        Args:
            pair: Bybit-quoted pair

        Returns:
            The ticker object (symbol, lastPrice, bid1Price, ...)

        Raises:
            ProviderError: Network/HTTP failure or Bybit error code
            ParseError: Empty ticker list

        Bybit Endpoint:
            GET /v5/market/tickers?category=spot&symbol={ticker}
        """
        self.logger.debug(f"Fetching spot ticker: {pair.ticker}")

        params = {
            "category": "spot",
            "symbol": pair.ticker,
        }
        result = await self._get_result("/v5/market/tickers", params)

        tickers = result.get("list")
        if not isinstance(tickers, list) or not tickers:
            raise ParseError(f"bybit: no ticker returned for {pair.ticker}")

        ticker = tickers[0]
        if not isinstance(ticker, dict):
            raise ParseError(f"bybit: malformed ticker for {pair.ticker}")
        return ticker
