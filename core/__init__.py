"""
Core Package

Contains the provider-agnostic core logic including:
- Schemas: Pydantic models for pairs and quote snapshots
- Pairs: the default fiat and crypto catalogs
- MarketDataClient: registry/facade over the provider clients
- PairCatalog: per-variant quote resolution (session, history fallback, derived)
- Config, logging and the error taxonomy shared by every layer
"""
