"""
Unified Logging Configuration

This module sets up a centralized logging system for the whole quote service.
Every component (provider clients, pair catalog, quote cache, scheduler)
imports its logger from here instead of using print() statements.

Usage:
    from core.logging import logger, get_logger

    logger.info("Quote service starting")

    log = get_logger(__name__)
    log.debug("Resolving USD_RUB")

Log Levels (from most to least verbose):
    DEBUG    - Request/response details (e.g., "API Request: moex /iss/... | Params: {...}")
    INFO     - Lifecycle events (e.g., "Quote cache refreshed: 8 pairs")
    WARNING  - Degraded behavior (e.g., "Serving stale fiat quotes")
    ERROR    - Failures that don't stop the service (e.g., "Broadcast job failed")
    CRITICAL - Failures that stop the service

Configuration:
    Log level is controlled by the LOG_LEVEL setting in the .env file
    (defaults to INFO).
"""

import logging
import sys
from typing import Optional


ROOT_LOGGER_NAME = "ratecast"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: Configured "ratecast" logger

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Quote service started")
        2024-01-01 12:00:00 [INFO] ratecast: Quote service started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s:")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level if hasattr(settings, 'log_level') else "INFO"
except ImportError:
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a specific module.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger named "ratecast.<name>"

    Example:
        >>> log = get_logger("storage.quote_cache")
        >>> log.info("Refreshing fiat quotes")
        2024-01-01 12:00:00 [INFO] ratecast.storage.quote_cache: Refreshing fiat quotes
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(provider: str, endpoint: str, params: dict = None) -> None:
    """
    Log an outgoing provider request with consistent formatting.

    Example:
        >>> log_api_request("moex", "/iss/engines/.../USD000UTSTOM.json", {"iss.meta": "off"})
        [DEBUG] API Request: moex /iss/engines/.../USD000UTSTOM.json | Params: {'iss.meta': 'off'}
    """
    if params:
        logger.debug(f"API Request: {provider} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {provider} {endpoint}")


def log_api_response(provider: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log a provider response with status and timing information.

    Example:
        >>> log_api_response("bybit", "/tickers", 200, 0.342)
        [DEBUG] API Response: bybit /tickers | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {provider} {endpoint} | Status: {status}{time_str}")


def log_websocket_event(event: str, details: str = None) -> None:
    """
    Log a broadcast WebSocket event (connected, disconnected, error).

    Example:
        >>> log_websocket_event("connected", "subscribers=3")
        [INFO] WebSocket: broadcast connected | subscribers=3
    """
    details_str = f" | {details}" if details else ""

    level = logging.ERROR if event == "error" else logging.INFO
    logger.log(level, f"WebSocket: broadcast {event}{details_str}")


logger.debug("Logging system initialized")
