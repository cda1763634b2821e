"""
Quote Cache - TTL Snapshot with Single-Flight Refresh

Serves the latest QuoteSet of one pair group to any number of concurrent
readers while calling the providers at most once per freshness window.

Protocol:
    - Fresh snapshot (now < expires_at): returned immediately, no I/O
    - Stale or empty: the first reader installs a refresh task in the
      in-flight slot and becomes the leader; every reader arriving while
      that task runs awaits the same task instead of fetching
    - Success: snapshot replaced in a single assignment,
      expires_at = completion time + TTL, every waiter gets the same object
    - Failure: snapshot and expires_at untouched; waiters get the previous
      snapshot (serve_stale_on_error and one exists) or QuotesUnavailableError

The slot check and the task installation run without a suspension point in
between, so on one event loop two readers can never both see "no refresh
running". Waiters await the task through asyncio.shield: a reader whose
request is cancelled does not cancel the refresh other readers depend on.

Usage:
    cache = QuoteCache(PairCatalog(FIAT_PAIRS, client))
    quotes = await cache.get_fresh()
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional

from core.config import settings
from core.errors import QuoteServiceError, QuotesUnavailableError
from core.logging import get_logger
from core.pair_catalog import PairCatalog
from core.schemas import QuoteSet
from core.utils.time import current_utc_datetime


class QuoteCache:
    """
    In-memory cache holding the single most recent QuoteSet of a pair group.

    Attributes:
        catalog: PairCatalog resolving the group's pairs
        group: Pair group served by this cache
        ttl: Freshness window (5 minutes by default)
        serve_stale_on_error: Failure policy, see module docstring
        refresh_count: Completed successful refreshes
        failure_count: Failed refreshes
        last_error: Message of the most recent refresh failure

    Example:
        >>> cache = QuoteCache(catalog, ttl_seconds=300)
        >>> first = await cache.get_fresh()   # fetches
        >>> second = await cache.get_fresh()  # served from memory
        >>> first is second
        True
    """

    def __init__(
        self,
        catalog: PairCatalog,
        ttl_seconds: Optional[int] = None,
        serve_stale_on_error: Optional[bool] = None,
        clock: Callable[[], datetime] = current_utc_datetime
    ):
        self.catalog = catalog
        self.group = catalog.group
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.quotes_ttl_seconds)
        self.serve_stale_on_error = (
            serve_stale_on_error if serve_stale_on_error is not None else settings.serve_stale_on_error
        )
        self._clock = clock
        self.logger = get_logger(__name__)

        self._snapshot: Optional[QuoteSet] = None
        self._expires_at: Optional[datetime] = None
        self._inflight: Optional[asyncio.Task] = None

        self.refresh_count = 0
        self.failure_count = 0
        self.last_error: Optional[str] = None

    # ============================================
    # State Inspection
    # ============================================

    @property
    def snapshot(self) -> Optional[QuoteSet]:
        """Current snapshot without triggering a refresh (may be stale or None)."""
        return self._snapshot

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._expires_at

    @property
    def is_fresh(self) -> bool:
        return (
            self._snapshot is not None
            and self._expires_at is not None
            and self._clock() < self._expires_at
        )

    @property
    def refresh_in_flight(self) -> bool:
        return self._inflight is not None

    def status(self) -> dict:
        """Summary used by the health endpoint."""
        return {
            "group": self.group,
            "fresh": self.is_fresh,
            "has_snapshot": self._snapshot is not None,
            "expires_at": self._expires_at.isoformat() if self._expires_at else None,
            "refresh_in_flight": self.refresh_in_flight,
            "refresh_count": self.refresh_count,
            "failure_count": self.failure_count,
            "last_error": self.last_error,
        }

    # ============================================
    # Reads
    # ============================================

    async def get_fresh(self) -> QuoteSet:
        """
        Return a fresh QuoteSet, refreshing (or joining a refresh) when stale.

        Returns:
            The cached snapshot, the snapshot produced by the in-flight
            refresh, or the previous snapshot when the refresh failed and
            stale serving is enabled

        Raises:
            QuotesUnavailableError: Refresh failed and nothing can be served
        """
        snapshot = self._snapshot
        if snapshot is not None and self.is_fresh:
            return snapshot

        if self._inflight is None:
            self.logger.debug(f"{self.group} quotes stale, starting refresh")
            task = asyncio.create_task(self._refresh(), name=f"quote_refresh_{self.group}")
            task.add_done_callback(_consume_task_exception)
            self._inflight = task
        else:
            self.logger.debug(f"{self.group} refresh already in flight, waiting")

        return await asyncio.shield(self._inflight)

    def invalidate(self) -> None:
        """Force the next get_fresh() to refresh. An in-flight refresh is not affected."""
        self._expires_at = None
        self.logger.debug(f"{self.group} quotes invalidated")

    # ============================================
    # Refresh Leader
    # ============================================

    async def _refresh(self) -> QuoteSet:
        try:
            quote_set = await self.catalog.resolve_all()
        except Exception as e:
            if not isinstance(e, QuoteServiceError):
                self.logger.error(f"{self.group} refresh raised an unexpected error", exc_info=True)
            reason = str(e) or type(e).__name__
            self.failure_count += 1
            self.last_error = reason
            previous = self._snapshot
            if self.serve_stale_on_error and previous is not None:
                self.logger.warning(
                    f"{self.group} refresh failed, serving stale quotes as of "
                    f"{previous.as_of.isoformat()}: {reason}"
                )
                return previous
            self.logger.error(f"{self.group} refresh failed: {reason}")
            raise QuotesUnavailableError(self.group, reason) from e
        else:
            now = self._clock()
            self._snapshot = quote_set
            self._expires_at = now + self.ttl
            self.refresh_count += 1
            self.last_error = None
            self.logger.info(
                f"{self.group} quotes refreshed: {len(quote_set)} pairs, "
                f"fresh until {self._expires_at.isoformat()}"
            )
            return quote_set
        finally:
            self._inflight = None


def _consume_task_exception(task: asyncio.Task) -> None:
    # every waiter may have been cancelled; mark the exception as retrieved
    if not task.cancelled():
        task.exception()
