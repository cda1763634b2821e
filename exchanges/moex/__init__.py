"""
Moscow Exchange Connector

Fiat currency quotes from the MOEX currency market (board CETS).

Endpoints Used:
    REST (GET requests to https://iss.moex.com/iss):
        - /engines/currency/markets/selt/boards/CETS/securities/{ticker}.json - current session
        - /history/engines/currency/markets/selt/boards/CETS/securities/{ticker}.json - past sessions

Structure:
    exchanges/moex/
    ├── __init__.py          # This file
    └── api_client.py        # REST API client with aiohttp
"""

from .api_client import MoexAPIClient

__all__ = ["MoexAPIClient"]
