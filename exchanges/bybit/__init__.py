"""
Bybit Exchange Connector

Cryptocurrency spot quotes from Bybit.

API Documentation:
    https://bybit-exchange.github.io/docs/v5/intro

Endpoints Used:
    REST (GET requests to https://api.bybit.com/v5/market):
        - /tickers?category=spot - spot tickers

Structure:
    exchanges/bybit/
    ├── __init__.py          # This file
    └── api_client.py        # REST API client with aiohttp
"""

from .api_client import BybitAPIClient

__all__ = ["BybitAPIClient"]
