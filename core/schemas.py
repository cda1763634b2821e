"""
Quote Data Schemas

This module defines the Pydantic models shared by every component of the
quote service.

Models:
    - ExchangeQuoted: pair variant quoted directly by a provider (moex, bybit)
    - Derived: pair variant computed from another pair's quote
    - CurrencyPair: a tradable or derived pair with display codes
    - PairQuote: one resolved (pair, quote) entry
    - QuoteSet: an immutable snapshot of resolved quotes for one pair group

All models are frozen. A QuoteSet handed to a reader can therefore be shared
between any number of concurrent readers without copying.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


Provider = Literal["moex", "bybit"]
PairGroup = Literal["fiat", "crypto"]


# ============================================
# Pair Variants
# ============================================

class ExchangeQuoted(BaseModel):
    """
    Pair quoted directly by a provider.

    Attributes:
        provider: "moex" for exchange sessions with a previous-close fallback,
                  "bybit" for spot tickers
    """

    model_config = ConfigDict(frozen=True)

    provider: Provider


class Derived(BaseModel):
    """
    Pair computed from the last resolved quote of exactly one base pair.

    The transform is a pure function applied once per refresh cycle, after
    the base pair was resolved in that same cycle. Derived pairs never
    trigger their own fetch.
    """

    model_config = ConfigDict(frozen=True)

    base: "CurrencyPair"
    transform: Callable[[float], float]


# ============================================
# Currency Pair
# ============================================

class CurrencyPair(BaseModel):
    """
    Currency Pair Model

    Attributes:
        name: Unique pair identifier (e.g., "USD_RUB")
        ticker: Provider symbol (e.g., "USD000UTSTOM"); empty for derived pairs
        first_code: Base currency display code (e.g., "USD")
        second_code: Quote currency display code (e.g., "RUB")
        face_value: Lot size the provider quotes for; provider quote divided
                    by face_value gives the price of 1 unit of first_code
        group: Logical broadcast group ("fiat" or "crypto")
        hidden: Resolved every cycle but left out of broadcast messages
        kind: ExchangeQuoted or Derived

    Example:
        >>> kzt_rub = CurrencyPair(
        ...     name="KZT_RUB", ticker="KZTRUB_TOM",
        ...     first_code="KZT", second_code="RUB", face_value=100,
        ...     group="fiat", hidden=True,
        ...     kind=ExchangeQuoted(provider="moex"),
        ... )
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique pair identifier", examples=["USD_RUB", "BTC_USDT"])
    ticker: str = Field(default="", description="Provider symbol, empty for derived pairs")
    first_code: str = Field(..., description="Base currency code")
    second_code: str = Field(..., description="Quote currency code")
    face_value: int = Field(default=1, ge=1, description="Provider lot size normalization factor")
    group: PairGroup = Field(..., description="Broadcast group")
    hidden: bool = Field(default=False, description="Excluded from broadcast messages")
    kind: Union[ExchangeQuoted, Derived]

    @field_validator('name', 'ticker')
    @classmethod
    def validate_upper(cls, v: str) -> str:
        """Pair names and tickers are uppercase"""
        return v.upper()

    @model_validator(mode='after')
    def validate_kind(self) -> "CurrencyPair":
        if isinstance(self.kind, Derived):
            if self.ticker:
                raise ValueError(f"Derived pair {self.name} must not have a ticker")
            if self.kind.base.name == self.name:
                raise ValueError(f"Derived pair {self.name} cannot derive from itself")
        elif not self.ticker:
            raise ValueError(f"Exchange-quoted pair {self.name} requires a ticker")
        return self

    @property
    def is_derived(self) -> bool:
        return isinstance(self.kind, Derived)

    @property
    def provider(self) -> Optional[str]:
        """Provider id for exchange-quoted pairs, None for derived ones."""
        if isinstance(self.kind, ExchangeQuoted):
            return self.kind.provider
        return None

    @property
    def base(self) -> Optional["CurrencyPair"]:
        """Base pair for derived pairs, None otherwise."""
        if isinstance(self.kind, Derived):
            return self.kind.base
        return None

    @property
    def label(self) -> str:
        return f"{self.first_code}/{self.second_code}"

    def describe(self) -> Dict[str, Any]:
        """JSON-friendly description (the transform itself is not serializable)."""
        return {
            "name": self.name,
            "ticker": self.ticker,
            "first_code": self.first_code,
            "second_code": self.second_code,
            "face_value": self.face_value,
            "group": self.group,
            "hidden": self.hidden,
            "provider": self.provider,
            "derived_from": self.base.name if self.base else None,
        }

    def __str__(self) -> str:
        return self.name


Derived.model_rebuild()


# ============================================
# Quote Set
# ============================================

class PairQuote(BaseModel):
    """One resolved quote, per 1 unit of the pair's first currency."""

    model_config = ConfigDict(frozen=True)

    pair: CurrencyPair
    quote: float


class QuoteSet(BaseModel):
    """
    Immutable snapshot of the quotes of one pair group.

    Attributes:
        group: Pair group these quotes belong to
        quotes: Resolved quotes in catalog order
        as_of: When the refresh that produced this set completed (UTC)
        update_time: Provider-reported update time (session UPDATETIME for
                     MOEX pairs, fetch time for spot tickers)

    Example:
        >>> quote_set.get("USD_RUB")
        91.2
        >>> USD_RUB in quote_set
        True
    """

    model_config = ConfigDict(frozen=True)

    group: PairGroup
    quotes: Tuple[PairQuote, ...]
    as_of: datetime
    update_time: datetime

    def get(self, pair: Union[CurrencyPair, str], default: Optional[float] = None) -> Optional[float]:
        name = pair.name if isinstance(pair, CurrencyPair) else pair.upper()
        for entry in self.quotes:
            if entry.pair.name == name:
                return entry.quote
        return default

    def __getitem__(self, pair: Union[CurrencyPair, str]) -> float:
        value = self.get(pair)
        if value is None:
            raise KeyError(str(pair))
        return value

    def __contains__(self, pair: object) -> bool:
        if not isinstance(pair, (CurrencyPair, str)):
            return False
        return self.get(pair) is not None

    def __len__(self) -> int:
        return len(self.quotes)

    def __iter__(self) -> Iterator[PairQuote]:
        return iter(self.quotes)

    @property
    def pairs(self) -> List[CurrencyPair]:
        return [entry.pair for entry in self.quotes]

    def visible(self) -> List[PairQuote]:
        """Entries meant for broadcast (hidden helper pairs left out)."""
        return [entry for entry in self.quotes if not entry.pair.hidden]

    def to_payload(self) -> Dict[str, Any]:
        """JSON-friendly representation used by the HTTP API."""
        return {
            "group": self.group,
            "as_of": self.as_of.isoformat(),
            "update_time": self.update_time.isoformat(),
            "quotes": [
                {
                    "pair": entry.pair.name,
                    "first_code": entry.pair.first_code,
                    "second_code": entry.pair.second_code,
                    "quote": entry.quote,
                    "hidden": entry.pair.hidden,
                }
                for entry in self.quotes
            ],
        }
