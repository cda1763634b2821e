"""
Unit Tests for QuoteCache

These tests verify:
- Freshness: no provider call before expires_at, exactly one refresh after
- Single flight: concurrent readers of a stale cache share one refresh
- Failure policy: stale snapshot served, or QuotesUnavailableError raised
- A cancelled reader does not cancel the refresh others wait on

Run with:
    pytest tests/unit/test_quote_cache.py -v
"""

import asyncio
from datetime import timedelta

import pytest

from core.errors import ParseError, ProviderError, QuotesUnavailableError
from storage.quote_cache import QuoteCache
from tests.unit.fakes import START


TTL = timedelta(minutes=5)


@pytest.fixture
def cache(fiat_catalog, clock):
    return QuoteCache(fiat_catalog, ttl_seconds=300, serve_stale_on_error=True, clock=clock)


@pytest.fixture
def strict_cache(fiat_catalog, clock):
    return QuoteCache(fiat_catalog, ttl_seconds=300, serve_stale_on_error=False, clock=clock)


# ============================================
# Freshness Window
# ============================================

class TestFreshness:
    """Tests for the TTL window"""

    @pytest.mark.asyncio
    async def test_first_read_refreshes(self, cache, fiat_market_data):
        quote_set = await cache.get_fresh()

        assert quote_set["USD_RUB"] == 91.2049
        assert fiat_market_data.count("session", "USD_RUB") == 1
        assert cache.expires_at == START + TTL

    @pytest.mark.asyncio
    async def test_no_fetch_before_expiry(self, cache, fiat_market_data, clock):
        first = await cache.get_fresh()

        clock.advance(seconds=299)
        second = await cache.get_fresh()

        assert second is first
        assert fiat_market_data.count("session", "USD_RUB") == 1

    @pytest.mark.asyncio
    async def test_exactly_one_fetch_at_expiry(self, cache, fiat_market_data, clock):
        first = await cache.get_fresh()

        clock.advance(seconds=300)
        second = await cache.get_fresh()
        third = await cache.get_fresh()

        assert second is not first
        assert third is second
        assert fiat_market_data.count("session", "USD_RUB") == 2
        assert cache.expires_at == START + 2 * TTL

    @pytest.mark.asyncio
    async def test_expiry_measured_from_completion(self, cache, fiat_market_data, clock):
        fiat_market_data.gate = asyncio.Event()
        reader = asyncio.create_task(cache.get_fresh())
        await asyncio.sleep(0)

        clock.advance(seconds=2)
        fiat_market_data.gate.set()
        await reader

        assert cache.expires_at == START + timedelta(seconds=2) + TTL

    @pytest.mark.asyncio
    async def test_invalidate_forces_refresh(self, cache, fiat_market_data):
        await cache.get_fresh()

        cache.invalidate()
        await cache.get_fresh()

        assert fiat_market_data.count("session", "USD_RUB") == 2

    @pytest.mark.asyncio
    async def test_status_reports_state(self, cache):
        assert cache.status()["has_snapshot"] is False

        await cache.get_fresh()
        status = cache.status()

        assert status["fresh"] is True
        assert status["refresh_count"] == 1
        assert status["refresh_in_flight"] is False


# ============================================
# Single Flight
# ============================================

class TestSingleFlight:
    """Tests for refresh coalescing"""

    @pytest.mark.asyncio
    async def test_concurrent_readers_share_one_refresh(self, cache, fiat_market_data):
        results = await asyncio.gather(*(cache.get_fresh() for _ in range(50)))

        for pair_name in ("USD_RUB", "EUR_RUB", "CNY_RUB", "KZT_RUB", "TRY_RUB", "EUR_USD", "USD_KZT"):
            assert fiat_market_data.count("session", pair_name) == 1
        assert all(result is results[0] for result in results)
        assert cache.refresh_count == 1
        assert cache.expires_at == START + TTL

    @pytest.mark.asyncio
    async def test_readers_joining_mid_refresh_wait(self, cache, fiat_market_data):
        fiat_market_data.gate = asyncio.Event()
        first = asyncio.create_task(cache.get_fresh())
        await asyncio.sleep(0)
        assert cache.refresh_in_flight

        late = asyncio.create_task(cache.get_fresh())
        await asyncio.sleep(0)
        fiat_market_data.gate.set()

        assert await first is await late
        assert fiat_market_data.count("session", "USD_RUB") == 1

    @pytest.mark.asyncio
    async def test_cancelled_reader_does_not_cancel_refresh(self, cache, fiat_market_data):
        fiat_market_data.gate = asyncio.Event()
        leader = asyncio.create_task(cache.get_fresh())
        await asyncio.sleep(0)
        follower = asyncio.create_task(cache.get_fresh())
        await asyncio.sleep(0)

        leader.cancel()
        with pytest.raises(asyncio.CancelledError):
            await leader

        fiat_market_data.gate.set()
        quote_set = await follower

        assert quote_set["USD_RUB"] == 91.2049
        assert cache.refresh_count == 1

    @pytest.mark.asyncio
    async def test_groups_refresh_independently(self, cache, crypto_catalog, crypto_market_data, clock):
        crypto_cache = QuoteCache(crypto_catalog, ttl_seconds=300, clock=clock)

        fiat, crypto = await asyncio.gather(cache.get_fresh(), crypto_cache.get_fresh())

        assert fiat.group == "fiat"
        assert crypto.group == "crypto"
        assert crypto_market_data.count("ticker") == 4


# ============================================
# Failure Policy
# ============================================

class TestStaleOnError:
    """Tests for serve_stale_on_error=True"""

    @pytest.mark.asyncio
    async def test_failure_without_snapshot_raises(self, cache, fiat_market_data):
        fiat_market_data.error = ProviderError("moex", "timed out")

        with pytest.raises(QuotesUnavailableError) as exc_info:
            await cache.get_fresh()

        assert isinstance(exc_info.value.__cause__, ProviderError)
        assert cache.snapshot is None
        assert cache.failure_count == 1

    @pytest.mark.asyncio
    async def test_failure_serves_previous_snapshot(self, cache, fiat_market_data, clock):
        previous = await cache.get_fresh()
        clock.advance(seconds=301)
        fiat_market_data.error = ProviderError("moex", "HTTP 503", status=503)

        result = await cache.get_fresh()

        assert result is previous
        assert cache.expires_at == START + TTL
        assert cache.last_error is not None

    @pytest.mark.asyncio
    async def test_unexpected_error_serves_previous_snapshot(self, cache, fiat_market_data, clock):
        previous = await cache.get_fresh()
        clock.advance(seconds=301)
        fiat_market_data.error = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

        result = await cache.get_fresh()

        assert result is previous
        assert cache.failure_count == 1
        assert "invalid start byte" in cache.last_error
        assert not cache.refresh_in_flight

    @pytest.mark.asyncio
    async def test_unexpected_error_without_snapshot_raises_unavailable(self, cache, fiat_market_data):
        fiat_market_data.error = RuntimeError("boom")

        with pytest.raises(QuotesUnavailableError) as exc_info:
            await cache.get_fresh()

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert cache.failure_count == 1
        assert cache.last_error == "boom"

    @pytest.mark.asyncio
    async def test_next_read_after_failure_retries(self, cache, fiat_market_data, clock):
        await cache.get_fresh()
        clock.advance(seconds=301)
        fiat_market_data.error = ParseError("bad payload")
        await cache.get_fresh()

        fiat_market_data.error = None
        recovered = await cache.get_fresh()

        assert fiat_market_data.count("session", "USD_RUB") == 3
        assert cache.is_fresh
        assert cache.last_error is None
        assert recovered is cache.snapshot

    @pytest.mark.asyncio
    async def test_concurrent_readers_share_failure(self, cache, fiat_market_data):
        fiat_market_data.error = ProviderError("moex", "connection refused")

        results = await asyncio.gather(*(cache.get_fresh() for _ in range(10)), return_exceptions=True)

        assert all(isinstance(result, QuotesUnavailableError) for result in results)
        assert fiat_market_data.count("session", "USD_RUB") == 1


class TestErrorOnFailure:
    """Tests for serve_stale_on_error=False"""

    @pytest.mark.asyncio
    async def test_failure_raises_even_with_snapshot(self, strict_cache, fiat_market_data, clock):
        previous = await strict_cache.get_fresh()
        clock.advance(seconds=301)
        fiat_market_data.error = ProviderError("moex", "timed out")

        with pytest.raises(QuotesUnavailableError, match="fiat quotes temporarily unavailable"):
            await strict_cache.get_fresh()

        assert strict_cache.snapshot is previous
        assert strict_cache.expires_at == START + TTL

    @pytest.mark.asyncio
    async def test_parse_error_is_chained(self, strict_cache, fiat_market_data):
        fiat_market_data.error = ParseError("column/row mismatch")

        with pytest.raises(QuotesUnavailableError) as exc_info:
            await strict_cache.get_fresh()

        assert isinstance(exc_info.value.__cause__, ParseError)
