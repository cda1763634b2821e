"""
FastAPI Application - Ratecast Quote Service

Serves currency and crypto quotes with a 5-minute freshness window and
broadcasts them once a day at a fixed Moscow time.

Sources:
    - Moscow Exchange (ISS API): fiat pairs, previous close as fallback
    - Bybit (V5 spot tickers): crypto pairs

Features:
    - Cached quote snapshots per group (at most one provider round per TTL)
    - Ready-to-send quote messages
    - Daily broadcast stream over WebSocket

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

from contextlib import asynccontextmanager
from typing import Dict

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings, validate_configuration
from core.errors import QuotesUnavailableError
from core.logging import log_websocket_event, logger
from core.market_data import MarketDataClient
from core.pair_catalog import PairCatalog
from core.pairs import DEFAULT_GROUPS
from services.broadcast import QuoteBroadcaster
from services.event_bus import BROADCAST_TOPIC, bus
from services.scheduler import RecurringScheduler
from storage.quote_cache import QuoteCache


VERSION = "1.0.0"


# ============================================
# Service Wiring
# ============================================

market_data = MarketDataClient()

caches: Dict[str, QuoteCache] = {
    group: QuoteCache(PairCatalog(pairs, market_data))
    for group, pairs in DEFAULT_GROUPS.items()
}

broadcaster = QuoteBroadcaster(caches, bus)
scheduler = RecurringScheduler()


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    global scheduler

    # Startup
    logger.info("=== Application Starting ===")
    try:
        validate_configuration()
        scheduler = RecurringScheduler()
        await market_data.open()
        anchor_time, anchor_zone = settings.broadcast_anchor
        scheduler.schedule_daily(
            anchor_time,
            anchor_zone,
            broadcaster.broadcast,
            period=settings.broadcast_period_delta,
            name="broadcast",
        )
        await scheduler.start()
        logger.info("=== Started Successfully ===")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        await market_data.close()
        raise

    yield

    # Shutdown
    logger.info("=== Shutting Down ===")
    try:
        await scheduler.stop()
    except Exception as e:
        logger.error(f"Error stopping scheduler: {e}")
    await market_data.close()
    logger.info("=== Shutdown Complete ===")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="Ratecast Quote API",
    description=(
        "Currency and crypto quotes from the Moscow Exchange and Bybit.\n\n"
        "## REST Endpoints\n"
        "- `GET /quotes/{group}` - Current quotes of a group (`fiat` or `crypto`)\n"
        "- `GET /quotes/{group}/message` - Formatted quote message\n"
        "- `GET /pairs` - Configured pairs\n"
        "- `GET /health` - Cache and scheduler state\n\n"
        "## WebSocket Streams\n"
        "- `ws://{host}/ws/broadcast` - Scheduled quote broadcasts\n\n"
        "Quotes are cached for 5 minutes; when a provider fails the previous "
        "snapshot is served, or 503 if there is none."
    ),
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"]
)


def _get_cache(group: str) -> QuoteCache:
    cache = caches.get(group.lower())
    if cache is None:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown group '{group}'. Available: {', '.join(caches.keys())}"
        )
    return cache


# ============================================
# System Endpoints
# ============================================

@app.get("/", tags=["System"])
async def root():
    """API information and available groups."""
    return {
        "name": "Ratecast Quote API",
        "version": VERSION,
        "status": "operational",
        "docs": "/docs",
        "groups": list(caches.keys())
    }


@app.get("/health", tags=["System"])
async def health_check():
    """Cache freshness and scheduled job state. Never calls the providers."""
    cache_status = {group: cache.status() for group, cache in caches.items()}
    degraded = any(status["last_error"] for status in cache_status.values())
    return {
        "status": "degraded" if degraded else "healthy",
        "providers": market_data.list_providers(),
        "caches": cache_status,
        "jobs": [job.describe() for job in scheduler.jobs]
    }


@app.get("/pairs", tags=["System"])
async def list_pairs(include_hidden: bool = True):
    """
    List configured pairs per group.

    Example:
        GET /pairs?include_hidden=false  (only pairs shown in broadcasts)
    """
    return {
        group: [
            pair.describe()
            for pair in (cache.catalog.pairs if include_hidden else cache.catalog.visible_pairs)
        ]
        for group, cache in caches.items()
    }


# ============================================
# Quote Endpoints
# ============================================

@app.get("/quotes/{group}", tags=["Quotes"])
async def get_quotes(group: str):
    """
    Current quotes of a group.

    Example:
        GET /quotes/fiat
    """
    cache = _get_cache(group)
    try:
        quote_set = await cache.get_fresh()
    except QuotesUnavailableError as e:
        logger.error(f"Quotes unavailable: {e}")
        raise HTTPException(status_code=503, detail="Quotes temporarily unavailable")
    return quote_set.to_payload()


@app.get("/quotes/{group}/message", tags=["Quotes"])
async def get_quote_message(group: str):
    """
    Formatted quote message of a group, as broadcast.

    Example:
        GET /quotes/fiat/message
    """
    cache = _get_cache(group)
    try:
        quote_set = await cache.get_fresh()
    except QuotesUnavailableError as e:
        logger.error(f"Quotes unavailable: {e}")
        raise HTTPException(status_code=503, detail="Quotes temporarily unavailable")
    return {
        "group": cache.group,
        "update_time": quote_set.update_time.isoformat(),
        "text": broadcaster.on_refreshed(cache.group, quote_set)
    }


# ============================================
# WebSocket Endpoints
# ============================================

@app.websocket("/ws/broadcast")
async def websocket_broadcast(websocket: WebSocket):
    """
    Scheduled quote broadcasts.

    Example:
        ws://localhost:8000/ws/broadcast
    """
    await websocket.accept()
    queue = await bus.subscribe(BROADCAST_TOPIC)
    log_websocket_event("connected", f"subscribers={bus.subscriber_count(BROADCAST_TOPIC)}")
    try:
        while True:
            event = await queue.get()
            await websocket.send_json(event)
    except WebSocketDisconnect:
        log_websocket_event("disconnected")
    finally:
        await bus.unsubscribe(BROADCAST_TOPIC, queue)
