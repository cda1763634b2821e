"""
Quote Broadcast Service

Builds the human-readable quote messages and publishes them to the event
bus once per scheduled fire. Delivery to actual recipients (WebSocket
clients, chat bots) happens on the other side of the bus.

Message format:
    Exchange rates at 11:00 MSK:

    1 USD = 91.2 RUB
    1 EUR = 99.47 RUB
    1 RUB = 5.319 KZT

The header time is the provider update time of the snapshot shown in the
display timezone. Hidden pairs (e.g. KZT/RUB, kept only as the base of
RUB/KZT) are left out.

Event format (topic "broadcast"):
    {"type": "quotes", "group": "fiat", "text": "...", "update_time": "..."}
"""

from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Callable, Dict, List, Mapping, Optional
from zoneinfo import ZoneInfo

from core.config import settings
from core.errors import QuotesUnavailableError
from core.logging import get_logger
from core.schemas import QuoteSet
from services.event_bus import BROADCAST_TOPIC, EventBus
from storage.quote_cache import QuoteCache


SMALL_QUOTE_THRESHOLD = 1.5

HEADERS = {
    "fiat": "Exchange rates at",
    "crypto": "Crypto rates at",
}


# ============================================
# Formatting
# ============================================

def format_quote(value: float) -> str:
    """
    Format a quote for display.

    Quotes of 1.5 and above keep 2 decimals, smaller ones keep 3 so that
    rates like 0.188 stay readable. Trailing zeros are stripped.

    Example:
        >>> format_quote(91.2049)
        '91.2'
        >>> format_quote(0.18834)
        '0.188'
        >>> format_quote(100.0)
        '100'
    """
    places = Decimal("0.01") if value >= SMALL_QUOTE_THRESHOLD else Decimal("0.001")
    rounded = Decimal(str(value)).quantize(places, rounding=ROUND_HALF_EVEN)
    text = format(rounded, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_update_time(moment: datetime, zone: ZoneInfo) -> str:
    """Local HH:MM plus the zone abbreviation, e.g. 11:00 MSK."""
    local = moment.astimezone(zone)
    return f"{local:%H:%M} {local.tzname()}"


def _build_message(header: str, quote_set: QuoteSet, zone: ZoneInfo) -> str:
    lines = [f"{header} {format_update_time(quote_set.update_time, zone)}:", ""]
    for entry in quote_set.visible():
        lines.append(f"1 {entry.pair.first_code} = {format_quote(entry.quote)} {entry.pair.second_code}")
    return "\n".join(lines)


def build_fiat_message(quote_set: QuoteSet, zone: Optional[ZoneInfo] = None) -> str:
    return _build_message(HEADERS["fiat"], quote_set, zone or settings.display_zone)


def build_crypto_message(quote_set: QuoteSet, zone: Optional[ZoneInfo] = None) -> str:
    return _build_message(HEADERS["crypto"], quote_set, zone or settings.display_zone)


MESSAGE_BUILDERS: Dict[str, Callable[[QuoteSet, Optional[ZoneInfo]], str]] = {
    "fiat": build_fiat_message,
    "crypto": build_crypto_message,
}


# ============================================
# Broadcaster
# ============================================

class QuoteBroadcaster:
    """
    Publishes the current quotes of every group to the event bus.

    Attributes:
        caches: QuoteCache per group, in broadcast order
        event_bus: Sink the messages are published to
        display_zone: Timezone of the message header

    Example:
        >>> broadcaster = QuoteBroadcaster({"fiat": fiat_cache, "crypto": crypto_cache}, bus)
        >>> scheduler.schedule_daily("11:00:00", "Europe/Moscow", broadcaster.broadcast)
    """

    def __init__(
        self,
        caches: Mapping[str, QuoteCache],
        event_bus: EventBus,
        display_zone: Optional[ZoneInfo] = None
    ):
        self.caches = dict(caches)
        self.event_bus = event_bus
        self.display_zone = display_zone or settings.display_zone
        self.logger = get_logger(__name__)

    def on_refreshed(self, group: str, quote_set: QuoteSet) -> str:
        """Message text for a freshly obtained snapshot."""
        builder = MESSAGE_BUILDERS.get(group)
        if builder is None:
            raise KeyError(f"No message format for group '{group}'")
        return builder(quote_set, self.display_zone)

    async def build_message(self, group: str) -> str:
        """
        Current message text of one group.

        Raises:
            KeyError: Unknown group
            QuotesUnavailableError: Quotes could not be obtained
        """
        cache = self.caches[group]
        quote_set = await cache.get_fresh()
        return self.on_refreshed(group, quote_set)

    async def broadcast(self) -> List[str]:
        """
        Publish one message per group.

        A group whose quotes are unavailable is skipped; the others are
        still published.

        Returns:
            Groups that were published
        """
        published: List[str] = []
        for group, cache in self.caches.items():
            try:
                quote_set = await cache.get_fresh()
            except QuotesUnavailableError as e:
                self.logger.error(f"Skipping {group} broadcast: {e}")
                continue

            text = self.on_refreshed(group, quote_set)
            delivered = await self.event_bus.publish(BROADCAST_TOPIC, {
                "type": "quotes",
                "group": group,
                "text": text,
                "update_time": quote_set.update_time.isoformat(),
            })
            published.append(group)
            self.logger.info(f"Broadcast {group} quotes to {delivered} subscriber(s)")

        return published
