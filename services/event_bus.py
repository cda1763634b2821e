"""
Simple Async Pub/Sub Event Bus

The broadcast sink of the quote service. The scheduled broadcast publishes
formatted quote messages here; the transport layer (the WebSocket route in
app/main.py, or a chat bot) subscribes and delivers them. Recipient
identities never reach the core.
"""

import asyncio
from collections import defaultdict
from typing import Any, DefaultDict, Dict, Set

from core.logging import get_logger


BROADCAST_TOPIC = "broadcast"


class EventBus:
    """
    Async event bus with topic-based pub/sub.

    - Each subscriber gets its own asyncio.Queue and will not block publishers.
    - Unsubscribing is important to avoid queue leaks when clients disconnect.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._topics: DefaultDict[str, Set[asyncio.Queue]] = defaultdict(set)
        self._max_queue_size = max_queue_size
        self._lock = asyncio.Lock()
        self._logger = get_logger(__name__)

    async def subscribe(self, topic: str) -> asyncio.Queue:
        """
        Subscribe to a topic. Returns an asyncio.Queue for receiving events.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        async with self._lock:
            self._topics[topic].add(queue)
        self._logger.debug(f"Subscriber added to topic '{topic}'. total={len(self._topics[topic])}")
        return queue

    async def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        """
        Unsubscribe a queue from a topic.
        """
        async with self._lock:
            self._topics.get(topic, set()).discard(queue)
        self._logger.debug(f"Subscriber removed from topic '{topic}'. total={len(self._topics[topic])}")

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, set()))

    async def publish(self, topic: str, event: Dict[str, Any]) -> int:
        """
        Publish an event to a topic. Drops the event for subscribers whose
        queue is full.

        Returns:
            Number of subscribers the event was delivered to
        """
        subscribers = list(self._topics.get(topic, set()))
        delivered = 0

        for q in subscribers:
            try:
                q.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                self._logger.warning(f"Dropping event for topic '{topic}' due to full queue")

        return delivered


# Singleton event bus for the application
bus = EventBus()
