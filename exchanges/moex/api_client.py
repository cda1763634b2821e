"""
Moscow Exchange (MOEX) ISS REST API Client

This module provides an async HTTP client for the MOEX ISS API, currency
market (engine "currency", market "selt", board "CETS").

It handles:
- Current/most recent session market data (LAST, UPDATETIME, ...)
- Historical session results over a date window (CLOSE, TRADEDATE, ...)
- Normalization of ISS column-oriented blocks into field -> value mappings

API Documentation:
    https://iss.moex.com/iss/reference/

Response shape (current session, iss.only=marketdata):
    {"marketdata": {"columns": ["SECID", "LAST", "UPDATETIME", ...],
                    "data": [["USD000UTSTOM", 91.2, "18:49:59", ...]]}}

Response shape (history, sort_order=desc):
    {"history": {"columns": ["TRADEDATE", "SECID", "CLOSE", ...],
                 "data": [["2023-06-15", "USD000UTSTOM", 82.1, ...], ...]}}

Usage:
    async with MoexAPIClient() as client:
        session = await client.fetch_current_session(USD_RUB)
        history = await client.fetch_history_window(USD_RUB, date(2023, 6, 9), date(2023, 6, 15))
"""

from datetime import date
from typing import Any, Dict, List, Optional

import aiohttp

from core.config import settings
from core.schemas import CurrencyPair
from core.utils.tabular import single_row, table_rows
from exchanges.base import BaseAPIClient


class MoexAPIClient(BaseAPIClient):
    """
    Async HTTP client for the MOEX ISS API

    Example:
        >>> async with MoexAPIClient() as client:
        ...     data = await client.fetch_current_session(USD_RUB)
        ...     print(data["LAST"], data["UPDATETIME"])

    Notes:
        - Free ISS data lags real time by about 15 minutes during a session
        - After a session ends, UPDATETIME is the session close time
        - LAST is null before the first trade of a session
    """

    name = "moex"

    MARKET_PATH = "/engines/currency/markets/selt/boards/CETS/securities"

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None
    ):
        super().__init__(base_url or settings.moex_base_url, session=session, timeout=timeout)

    # ============================================
    # Market Data Methods
    # ============================================

    async def fetch_current_session(self, pair: CurrencyPair) -> Dict[str, Any]:
        """
        Fetch market data of the current (or most recent) session.

        Args:
            pair: MOEX-quoted pair

        Returns:
            Dict mapping ISS column name to value for the pair's single row

        Raises:
            ProviderError: Network/HTTP failure
            ParseError: Missing marketdata block, no row, or column/row mismatch

        ISS Endpoint:
            GET /iss/engines/currency/markets/selt/boards/CETS/securities/{ticker}.json
        """
        self.logger.debug(f"Fetching current session: {pair.ticker}")

        params = {
            "iss.meta": "off",
            "iss.only": "marketdata",
        }
        payload = await self._get(f"/iss{self.MARKET_PATH}/{pair.ticker}.json", params)
        return single_row(payload, "marketdata")

    async def fetch_history_window(self, pair: CurrencyPair, from_date: date, till_date: date) -> List[Dict[str, Any]]:
        """
        Fetch session results for an inclusive date window.

        Args:
            pair: MOEX-quoted pair
            from_date: First trade date (inclusive)
            till_date: Last trade date (inclusive)

        Returns:
            List of row mappings, newest trade date first (index 0 is the
            most recent session in the window). Empty if the window holds no
            trading days.

        Raises:
            ProviderError: Network/HTTP failure
            ParseError: Missing history block or column/row mismatch

        ISS Endpoint:
            GET /iss/history/engines/currency/markets/selt/boards/CETS/securities/{ticker}.json
        """
        self.logger.debug(f"Fetching history window: {pair.ticker} {from_date} .. {till_date}")

        params = {
            "iss.meta": "off",
            "from": from_date.isoformat(),
            "till": till_date.isoformat(),
            "sort_order": "desc",
        }
        payload = await self._get(f"/iss/history{self.MARKET_PATH}/{pair.ticker}.json", params)
        return table_rows(payload, "history")
