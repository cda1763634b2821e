"""
Default Pair Catalog Definitions

Fiat pairs are quoted on the Moscow Exchange currency market (board CETS).
Face values come from the ISS security description of each instrument, e.g.
https://iss.moex.com/iss/securities/KZTRUB_TOM.json: KZT is quoted per 100
units, so LAST = 19 means 100 KZT = 19 RUB.

RUB/KZT is not traded, but it is the quote people actually use
(1 RUB = 5.31 KZT reads better than 1 KZT = 0.188 RUB), so it is derived
from KZT/RUB every refresh cycle. KZT/RUB itself is hidden from broadcasts.

Crypto pairs are Bybit spot tickers.
"""

from typing import Tuple

from core.errors import ParseError
from core.schemas import CurrencyPair, Derived, ExchangeQuoted


def reciprocal(quote: float) -> float:
    """
    Inverse quote (1 / q).

    Raises:
        ParseError: If the base quote is zero
    """
    if quote == 0:
        raise ParseError("Cannot invert a zero quote")
    return 1 / quote


def moex_pair(name: str, ticker: str, first: str, second: str, face_value: int = 1,
              hidden: bool = False) -> CurrencyPair:
    return CurrencyPair(
        name=name,
        ticker=ticker,
        first_code=first,
        second_code=second,
        face_value=face_value,
        group="fiat",
        hidden=hidden,
        kind=ExchangeQuoted(provider="moex"),
    )


def bybit_pair(name: str, ticker: str, first: str, second: str) -> CurrencyPair:
    return CurrencyPair(
        name=name,
        ticker=ticker,
        first_code=first,
        second_code=second,
        group="crypto",
        kind=ExchangeQuoted(provider="bybit"),
    )


# ============================================
# Fiat (MOEX)
# ============================================

USD_RUB = moex_pair("USD_RUB", "USD000UTSTOM", "USD", "RUB")
EUR_RUB = moex_pair("EUR_RUB", "EUR_RUB__TOM", "EUR", "RUB")
CNY_RUB = moex_pair("CNY_RUB", "CNYRUB_TOM", "CNY", "RUB")
KZT_RUB = moex_pair("KZT_RUB", "KZTRUB_TOM", "KZT", "RUB", face_value=100, hidden=True)
TRY_RUB = moex_pair("TRY_RUB", "TRYRUB_TOM", "TRY", "RUB")
EUR_USD = moex_pair("EUR_USD", "EURUSD000TOM", "EUR", "USD")
USD_KZT = moex_pair("USD_KZT", "USDKZT_TOM", "USD", "KZT")

RUB_KZT = CurrencyPair(
    name="RUB_KZT",
    first_code="RUB",
    second_code="KZT",
    group="fiat",
    kind=Derived(base=KZT_RUB, transform=reciprocal),
)

# ============================================
# Crypto (Bybit spot)
# ============================================

BTC_USDT = bybit_pair("BTC_USDT", "BTCUSDT", "BTC", "USDT")
ETH_USDT = bybit_pair("ETH_USDT", "ETHUSDT", "ETH", "USDT")
SOL_USDT = bybit_pair("SOL_USDT", "SOLUSDT", "SOL", "USDT")
WLKN_USDT = bybit_pair("WLKN_USDT", "WLKNUSDT", "WLKN", "USDT")


FIAT_PAIRS: Tuple[CurrencyPair, ...] = (
    USD_RUB,
    EUR_RUB,
    CNY_RUB,
    KZT_RUB,
    TRY_RUB,
    EUR_USD,
    USD_KZT,
    RUB_KZT,
)

CRYPTO_PAIRS: Tuple[CurrencyPair, ...] = (
    BTC_USDT,
    ETH_USDT,
    SOL_USDT,
    WLKN_USDT,
)

DEFAULT_GROUPS = {
    "fiat": FIAT_PAIRS,
    "crypto": CRYPTO_PAIRS,
}
