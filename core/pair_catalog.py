"""
Pair Catalog - Quote Resolution Protocol

This module turns a CurrencyPair into its current quote. Each pair variant
carries its own resolution strategy:

    moex     current-session LAST / face_value; when LAST is null or absent
             (session not started, no trades yet) the CLOSE of the most
             recent session in a trailing 7-day window ending yesterday
    bybit    spot ticker lastPrice, no normalization, no fallback
    derived  transform(base quote resolved earlier in the same cycle);
             never fetched

The 7-day lookback covers any run of weekends and holidays, so at least one
trading day is always present. History rows come newest first; row 0 is the
previous session.

Failures propagate unchanged to the caller (ProviderError for transport
problems, ParseError for payload problems). The catalog never retries.

Usage:
    catalog = PairCatalog(FIAT_PAIRS, client)
    quote_set = await catalog.resolve_all()
    usd_rub = await catalog.resolve(USD_RUB)
"""

from datetime import datetime
from time import monotonic
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Tuple
from zoneinfo import ZoneInfo

from core.config import settings
from core.errors import ConfigError, ParseError
from core.logging import get_logger
from core.market_data import MarketDataClient
from core.schemas import CurrencyPair, PairQuote, QuoteSet
from core.utils.tabular import parse_number
from core.utils.time import combine_in_zone, current_utc_datetime, parse_time_of_day, today_in_zone, trailing_window


class ResolvedQuote(NamedTuple):
    """A quote plus the provider-reported update time, when there is one."""

    quote: float
    update_time: Optional[datetime] = None


class PairCatalog:
    """
    Ordered collection of the pairs of one group, with their resolution rules.

    Attributes:
        group: Pair group shared by every pair in the catalog
        pairs: Pairs in resolution order (bases before derived pairs)

    Example:
        >>> async with MarketDataClient() as client:
        ...     catalog = PairCatalog(FIAT_PAIRS, client)
        ...     quotes = await catalog.resolve_all()
        ...     print(quotes["RUB_KZT"])

    Notes:
        - Construction fails with ConfigError when a derived pair's base is
          missing from the catalog or listed after it
        - resolve_all() is the only place a full cycle runs; the quote cache
          calls it from its single refresh leader
    """

    def __init__(
        self,
        pairs: Iterable[CurrencyPair],
        client: MarketDataClient,
        exchange_zone: Optional[ZoneInfo] = None,
        lookback_days: Optional[int] = None,
        clock: Callable[[], datetime] = current_utc_datetime
    ):
        self._pairs: Tuple[CurrencyPair, ...] = tuple(pairs)
        self.client = client
        self.exchange_zone = exchange_zone or settings.exchange_zone
        self.lookback_days = lookback_days if lookback_days is not None else settings.history_lookback_days
        self._clock = clock
        self.logger = get_logger(__name__)

        self._validate()
        self.group = self._pairs[0].group

        self._strategies: Dict[str, Callable[..., Awaitable[ResolvedQuote]]] = {
            "moex": self._resolve_session,
            "bybit": self._resolve_spot_ticker,
            "derived": self._resolve_derived,
        }

    def _validate(self) -> None:
        if not self._pairs:
            raise ConfigError("Pair catalog must contain at least one pair")

        groups = {pair.group for pair in self._pairs}
        if len(groups) > 1:
            raise ConfigError(f"Pair catalog mixes groups: {', '.join(sorted(groups))}")

        seen = set()
        for pair in self._pairs:
            if pair.name in seen:
                raise ConfigError(f"Duplicate pair in catalog: {pair.name}")
            if pair.is_derived and pair.base.name not in seen:
                raise ConfigError(
                    f"Derived pair {pair.name} must be listed after its base pair {pair.base.name}"
                )
            seen.add(pair.name)

    # ============================================
    # Catalog Access
    # ============================================

    @property
    def pairs(self) -> Tuple[CurrencyPair, ...]:
        return self._pairs

    @property
    def visible_pairs(self) -> List[CurrencyPair]:
        return [pair for pair in self._pairs if not pair.hidden]

    def __len__(self) -> int:
        return len(self._pairs)

    def __iter__(self) -> Iterator[CurrencyPair]:
        return iter(self._pairs)

    def __contains__(self, pair: object) -> bool:
        if isinstance(pair, CurrencyPair):
            return pair in self._pairs
        if isinstance(pair, str):
            return any(p.name == pair.upper() for p in self._pairs)
        return False

    # ============================================
    # Resolution
    # ============================================

    async def resolve(self, pair: CurrencyPair, resolved: Optional[Mapping[str, float]] = None) -> float:
        """
        Resolve the current quote of one pair.

        Args:
            pair: Pair to resolve
            resolved: Quotes already resolved in this cycle, by pair name
                      (required for derived pairs)

        Returns:
            Quote per 1 unit of the pair's first currency

        Raises:
            ProviderError: Provider unreachable or answered with an error
            ParseError: Payload missing expected fields
            ConfigError: Unknown variant, or derived base not yet resolved
        """
        result = await self._resolve_entry(pair, resolved or {})
        return result.quote

    async def _resolve_entry(self, pair: CurrencyPair, resolved: Mapping[str, float]) -> ResolvedQuote:
        variant = "derived" if pair.is_derived else pair.provider
        strategy = self._strategies.get(variant)
        if strategy is None:
            raise ConfigError(f"No resolution strategy for provider '{variant}' ({pair.name})")

        if variant == "derived":
            return await strategy(pair, resolved)
        return await strategy(pair)

    async def resolve_all(self) -> QuoteSet:
        """
        Run one refresh cycle over every pair in catalog order.

        Returns:
            QuoteSet with one entry per pair; update_time is the first
            session UPDATETIME reported by the provider, or the fetch time

        Raises:
            ProviderError / ParseError from the first pair that fails; a
            failed cycle produces no partial QuoteSet
        """
        self.logger.info(f"Resolving {len(self._pairs)} {self.group} pairs")
        start = monotonic()

        resolved: Dict[str, float] = {}
        entries: List[PairQuote] = []
        update_time: Optional[datetime] = None

        for pair in self._pairs:
            result = await self._resolve_entry(pair, resolved)
            resolved[pair.name] = result.quote
            entries.append(PairQuote(pair=pair, quote=result.quote))
            if update_time is None and result.update_time is not None:
                update_time = result.update_time
            self.logger.debug(f"{pair.name} = {result.quote}")

        as_of = self._clock()
        self.logger.info(f"Resolved {len(entries)} {self.group} pairs in {monotonic() - start:.3f}s")

        return QuoteSet(
            group=self.group,
            quotes=tuple(entries),
            as_of=as_of,
            update_time=update_time or as_of,
        )

    # ============================================
    # Resolution Strategies
    # ============================================

    async def _resolve_session(self, pair: CurrencyPair) -> ResolvedQuote:
        row = await self.client.fetch_current_session(pair)
        update_time = self._session_update_time(row)

        last = row.get("LAST")
        if last is not None:
            return ResolvedQuote(parse_number(last, "LAST") / pair.face_value, update_time)

        self.logger.info(f"No last price for {pair.name} in current session, using previous close")
        close = await self._previous_close(pair)
        return ResolvedQuote(close / pair.face_value, update_time)

    async def _previous_close(self, pair: CurrencyPair) -> float:
        from_date, till_date = trailing_window(self.exchange_zone, self.lookback_days, self._clock())
        rows = await self.client.fetch_history_window(pair, from_date, till_date)
        if not rows:
            raise ParseError(f"No sessions for {pair.name} between {from_date} and {till_date}")
        return parse_number(rows[0].get("CLOSE"), "CLOSE")

    async def _resolve_spot_ticker(self, pair: CurrencyPair) -> ResolvedQuote:
        ticker = await self.client.fetch_spot_ticker(pair)
        return ResolvedQuote(parse_number(ticker.get("lastPrice"), "lastPrice"))

    async def _resolve_derived(self, pair: CurrencyPair, resolved: Mapping[str, float]) -> ResolvedQuote:
        base = pair.base
        if base.name not in resolved:
            raise ConfigError(f"Base pair {base.name} must be resolved before {pair.name}")
        return ResolvedQuote(pair.kind.transform(resolved[base.name]))

    # ============================================
    # Helpers
    # ============================================

    def _session_update_time(self, row: Mapping[str, Any]) -> Optional[datetime]:
        """
        UPDATETIME ("HH:MM:SS", exchange local time) as an aware datetime.

        The date comes from SYSTIME ("YYYY-MM-DD HH:MM:SS") when present,
        otherwise today in the exchange timezone. Missing or malformed
        metadata yields None rather than failing the quote.
        """
        raw_time = row.get("UPDATETIME")
        if not raw_time:
            return None

        try:
            time_of_day = parse_time_of_day(str(raw_time))
        except ConfigError:
            self.logger.debug(f"Ignoring malformed UPDATETIME: {raw_time!r}")
            return None

        day = today_in_zone(self.exchange_zone, self._clock())
        systime = row.get("SYSTIME")
        if systime:
            try:
                day = datetime.strptime(str(systime)[:10], "%Y-%m-%d").date()
            except ValueError:
                self.logger.debug(f"Ignoring malformed SYSTIME: {systime!r}")

        return combine_in_zone(day, time_of_day, self.exchange_zone)
