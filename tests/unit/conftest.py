"""
Shared fixtures for unit tests.
"""

import pytest

from core.pair_catalog import PairCatalog
from core.pairs import CRYPTO_PAIRS, FIAT_PAIRS
from tests.unit.fakes import CRYPTO_LAST, FIAT_LAST, MOSCOW, FakeClock, FakeMarketData, session_row


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fiat_market_data() -> FakeMarketData:
    return FakeMarketData(sessions={ticker: session_row(last, ticker) for ticker, last in FIAT_LAST.items()})


@pytest.fixture
def crypto_market_data() -> FakeMarketData:
    return FakeMarketData(tickers={
        ticker: {"symbol": ticker, "lastPrice": last, "bid1Price": last}
        for ticker, last in CRYPTO_LAST.items()
    })


@pytest.fixture
def fiat_catalog(fiat_market_data, clock) -> PairCatalog:
    return PairCatalog(FIAT_PAIRS, fiat_market_data, exchange_zone=MOSCOW, lookback_days=7, clock=clock)


@pytest.fixture
def crypto_catalog(crypto_market_data, clock) -> PairCatalog:
    return PairCatalog(CRYPTO_PAIRS, crypto_market_data, exchange_zone=MOSCOW, lookback_days=7, clock=clock)
