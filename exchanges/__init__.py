"""
Provider Connectors Package

This package contains one connector module per market-data provider.
Each provider has its own subfolder with an api_client.py built on the
shared BaseAPIClient (exchanges/base.py).

- moex: fiat currency sessions and history (Moscow Exchange ISS)
- bybit: crypto spot tickers

Adding a provider means adding a subfolder and registering its client in
core.market_data.MarketDataClient.
"""
