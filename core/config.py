"""
Configuration Management Module

This module loads, validates and exposes the quote service configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Provider endpoints and network timeouts
- Quote cache TTL and failure policy
- The broadcast schedule tuple (time of day, timezone, period, period unit),
  or a combined "11:00:00 Europe/Moscow" schedule string
- Startup validation that raises ConfigError for anything unusable

Usage:
    from core.config import settings

    print(settings.moex_base_url)
    print(settings.broadcast_period_delta)  # timedelta(days=1)
"""

from datetime import time, timedelta
from typing import Tuple
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigError
from core.utils.time import parse_time_of_day, parse_zone


PERIOD_UNITS = {
    "seconds": "seconds",
    "minutes": "minutes",
    "hours": "hours",
    "days": "days",
}


class Settings(BaseSettings):
    """
    Application Settings

    Values are loaded from environment variables or the .env file
    (case-insensitive).

    Attributes:
        moex_base_url: Moscow Exchange ISS API base URL
        bybit_base_url: Bybit v5 market API base URL
        exchange_timezone: Timezone the exchange reports session times in
        connect_timeout: TCP connect timeout for provider requests (seconds)
        read_timeout: Socket read timeout for provider requests (seconds)
        history_lookback_days: Calendar days scanned for a previous close
        quotes_ttl_seconds: How long a refreshed quote set stays fresh
        serve_stale_on_error: Serve the last good quote set when a refresh fails
        broadcast_time: Daily broadcast wall-clock time ("HH:MM[:SS]")
        broadcast_timezone: Timezone the broadcast time is anchored to
        broadcast_schedule: Optional combined "<time> <zone>" schedule overriding the two above
        broadcast_period: Broadcast period length
        broadcast_period_unit: Unit of broadcast_period (seconds, minutes, hours, days)
        display_timezone: Timezone used for times shown in broadcast messages
    """

    # ============================================
    # Provider Configuration
    # ============================================

    moex_base_url: str = Field(
        default="https://iss.moex.com",
        description="Moscow Exchange ISS API base URL"
    )

    bybit_base_url: str = Field(
        default="https://api.bybit.com",
        description="Bybit API base URL"
    )

    exchange_timezone: str = Field(
        default="Europe/Moscow",
        description="Timezone the exchange reports UPDATETIME / trade dates in"
    )

    connect_timeout: float = Field(
        default=10.0,
        description="Provider connect timeout in seconds"
    )

    read_timeout: float = Field(
        default=10.0,
        description="Provider read timeout in seconds"
    )

    history_lookback_days: int = Field(
        default=7,
        description="Trailing calendar days searched for the previous session close"
    )

    # ============================================
    # Quote Cache Configuration
    # ============================================

    quotes_ttl_seconds: int = Field(
        default=300,
        description="Quote set freshness window in seconds (5 minutes)"
    )

    serve_stale_on_error: bool = Field(
        default=True,
        description="On refresh failure, serve the previous quote set if one exists"
    )

    # ============================================
    # Broadcast Schedule Configuration
    # ============================================

    broadcast_time: str = Field(
        default="11:00:00",
        description="Daily broadcast time of day"
    )

    broadcast_timezone: str = Field(
        default="Europe/Moscow",
        description="Timezone the broadcast time is anchored to"
    )

    broadcast_schedule: str = Field(
        default="",
        description="Combined '<time> <zone>' schedule, e.g. '11:00:00 Europe/Moscow'; "
                    "overrides broadcast_time and broadcast_timezone when set"
    )

    broadcast_period: int = Field(
        default=1,
        description="Broadcast period length"
    )

    broadcast_period_unit: str = Field(
        default="days",
        description="Broadcast period unit (seconds, minutes, hours, days)"
    )

    display_timezone: str = Field(
        default="Europe/Moscow",
        description="Timezone used to render update times in messages"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8000,
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    # ============================================
    # Derived Values
    # ============================================

    @property
    def broadcast_period_delta(self) -> timedelta:
        """
        Broadcast period as a timedelta.

        Raises:
            ConfigError: If the unit is unknown or the period is not positive

        Example:
            >>> settings.broadcast_period_delta
            datetime.timedelta(days=1)
        """
        unit = self.broadcast_period_unit.strip().lower()
        if unit not in PERIOD_UNITS:
            raise ConfigError(
                f"Invalid BROADCAST_PERIOD_UNIT: '{self.broadcast_period_unit}'. "
                f"Must be one of: {', '.join(PERIOD_UNITS)}"
            )
        if self.broadcast_period <= 0:
            raise ConfigError(f"BROADCAST_PERIOD must be positive, got {self.broadcast_period}")
        return timedelta(**{PERIOD_UNITS[unit]: self.broadcast_period})

    @property
    def broadcast_anchor(self) -> Tuple[time, ZoneInfo]:
        """
        Parsed (time of day, zone) pair for the broadcast job.

        BROADCAST_SCHEDULE wins when set; otherwise BROADCAST_TIME and
        BROADCAST_TIMEZONE are combined.

        Raises:
            ConfigError: If the time or zone is invalid
        """
        if self.broadcast_schedule.strip():
            return parse_schedule(self.broadcast_schedule)
        return parse_time_of_day(self.broadcast_time), parse_zone(self.broadcast_timezone)

    @property
    def exchange_zone(self) -> ZoneInfo:
        return parse_zone(self.exchange_timezone)

    @property
    def display_zone(self) -> ZoneInfo:
        return parse_zone(self.display_timezone)


settings = Settings()


# ============================================
# Schedule Parsing
# ============================================

def parse_schedule(value: str) -> Tuple[time, ZoneInfo]:
    """
    Parse a combined "<time> <zone>" schedule string.

    Args:
        value: e.g. "11:00:00 Europe/Moscow"

    Returns:
        Tuple of (time of day, ZoneInfo)

    Raises:
        ConfigError: If the string is not "<time> <zone>" or either part is invalid

    Example:
        >>> parse_schedule("11:00:00 Europe/Moscow")
        (datetime.time(11, 0), zoneinfo.ZoneInfo(key='Europe/Moscow'))
    """
    parts = value.split()
    if len(parts) != 2:
        raise ConfigError(f"Schedule must look like '11:00:00 Europe/Moscow', got '{value}'")
    return parse_time_of_day(parts[0]), parse_zone(parts[1])


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Raises:
        ConfigError: If any setting cannot be used
    """
    # core.logging imports this module, so the logger is imported lazily
    from core.logging import logger

    config = config or settings

    anchor_time, anchor_zone = config.broadcast_anchor
    for zone_name in (config.exchange_timezone, config.display_timezone):
        parse_zone(zone_name)
    period = config.broadcast_period_delta

    if config.quotes_ttl_seconds <= 0:
        raise ConfigError(f"QUOTES_TTL_SECONDS must be positive, got {config.quotes_ttl_seconds}")

    if config.connect_timeout <= 0 or config.read_timeout <= 0:
        raise ConfigError("CONNECT_TIMEOUT and READ_TIMEOUT must be positive")

    if config.history_lookback_days < 1:
        raise ConfigError(f"HISTORY_LOOKBACK_DAYS must be at least 1, got {config.history_lookback_days}")

    if not (1 <= config.app_port <= 65535):
        raise ConfigError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ConfigError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"MOEX API: {config.moex_base_url}")
    logger.info(f"Bybit API: {config.bybit_base_url}")
    logger.info(f"Quote TTL: {config.quotes_ttl_seconds}s (stale on error: {config.serve_stale_on_error})")
    logger.info(
        f"Broadcast: {anchor_time.isoformat()} {anchor_zone.key} "
        f"every {period}"
    )
