"""
Test Suite

Contains unit tests for the quote service.

Structure:
- tests/unit/: Tests for individual components (clients, catalog, cache,
  scheduler, broadcast, HTTP routes). Providers are always faked; no test
  touches the network.

Uses pytest with pytest-asyncio for testing async functionality.
"""
