"""Redis-based event bus carrying temperature readings.

Sensor bridges publish readings, the monitor service subscribes to them.
"""

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, Literal, Self

import redis
import redis.asyncio as aioredis

from tempmon.lib.config import get_settings
from tempmon.lib.reading import Reading, format_recording_time
from tempmon.logging import get_logger

logger = get_logger("lib.eventbus")


class Topic(StrEnum):
    """Event bus topics."""

    READING = "tempmon.reading"


@dataclass(frozen=True, slots=True)
class ReadingEvent:
    """Temperature reading event."""

    sensor_id: str
    value: Decimal
    recording_time: datetime
    name: str | None = None

    @property
    def event_type(self) -> Literal["reading"]:
        return "reading"

    @classmethod
    def from_reading(cls, reading: Reading) -> Self:
        return cls(
            sensor_id=reading.sensor_id,
            value=reading.value,
            recording_time=reading.recording_time,
            name=reading.name,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.event_type,
            "sensor_id": self.sensor_id,
            # String keeps the exact decimal value across the wire
            "value": str(self.value),
            "recording_time": format_recording_time(self.recording_time),
            "epoch": int(self.recording_time.timestamp() * 1000),
        }
        if self.name:
            data["name"] = self.name
        return data


class EventPublisher:
    """Publishes readings to the event bus."""

    def __init__(self) -> None:
        self._redis_url = get_settings().eventbus.redis_url
        self._client: redis.Redis | None = None

    def connect(self) -> None:
        """Connect to Redis."""
        self._client = redis.from_url(self._redis_url)
        logger.info("Event publisher connected to Redis")

    def publish(self, topic: Topic, event: ReadingEvent) -> None:
        """Publish an event to the event bus.

        Does nothing when not connected.
        """
        if self._client is None:
            return

        message = json.dumps(event.to_dict())
        self._client.publish(topic, message)
        logger.debug("Published to %s: %s", topic, message)

    def close(self) -> None:
        """Close the publisher connection."""
        if self._client is not None:
            self._client.close()
            self._client = None
        logger.info("Event publisher closed")


class EventSubscriber:
    """Subscribes to readings from the event bus."""

    def __init__(self, topics: list[Topic] | None = None) -> None:
        """Initialize subscriber.

        Args:
            topics: List of topics to subscribe to. If None, subscribes to all.
        """
        self._redis_url = get_settings().eventbus.redis_url
        self._topics = topics or list(Topic)
        self._client: aioredis.Redis | None = None
        self._pubsub: aioredis.client.PubSub | None = None

    async def connect(self) -> None:
        """Connect to Redis and subscribe to topics."""
        self._client = aioredis.from_url(self._redis_url)
        self._pubsub = self._client.pubsub()
        await self._pubsub.subscribe(*self._topics)
        logger.info(
            "Event subscriber connected to Redis, topics: %s", self._topics
        )

    async def receive(self) -> AsyncIterator[tuple[Topic, dict[str, Any]]]:
        """Async iterator that yields (topic, data) tuples as they arrive."""
        if self._pubsub is None:
            return

        async for message in self._pubsub.listen():
            if message["type"] != "message":
                continue

            try:
                topic = Topic(message["channel"].decode())
                data = json.loads(message["data"].decode())
            except (ValueError, json.JSONDecodeError) as e:
                logger.warning("Invalid message: %s", e)
                continue
            if not isinstance(data, dict):
                logger.warning("Invalid message: expected an object")
                continue
            yield topic, data

    async def close(self) -> None:
        """Close the subscriber connection."""
        if self._pubsub is not None:
            await self._pubsub.unsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Event subscriber closed")

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        await self.close()
