"""
Event dispatcher.

Services receive an EventDispatcher and call emit() after their transaction
commits. Publishing is best-effort: a failure is logged and never reaches the
caller, because the write it describes has already been persisted.
"""

from __future__ import annotations

from typing import Any, Protocol

import redis

from shared.config.logging import get_logger
from .event_schema import Event
from .redis_pool import get_redis_sync_client

logger = get_logger(__name__)


class EventDispatcher(Protocol):
    """Anything that can deliver a named event to a channel."""

    def emit(self, channel: str, event_name: str, payload: dict[str, Any]) -> None:
        ...


class RedisEventDispatcher:
    """Publishes events as JSON envelopes on Redis pub/sub channels."""

    def __init__(self, client: redis.Redis | None = None):
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = get_redis_sync_client()
        return self._client

    def emit(self, channel: str, event_name: str, payload: dict[str, Any]) -> None:
        try:
            event_json = Event(type=event_name, entity=dict(payload)).to_json()
            receivers = self.client.publish(channel, event_json)
        except (redis.RedisError, ValueError, TypeError) as e:
            logger.warning(
                "Event publish failed",
                channel=channel,
                event_type=event_name,
                error=str(e),
            )
            return
        logger.debug(
            "Event published",
            channel=channel,
            event_type=event_name,
            receivers=receivers,
        )


_dispatcher: RedisEventDispatcher | None = None


def get_event_dispatcher() -> EventDispatcher:
    """FastAPI dependency returning the process-wide dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = RedisEventDispatcher()
    return _dispatcher
