"""
Event publishing over Redis pub/sub.

Usage:
    from shared.infrastructure.events import channel_role, get_event_dispatcher

    dispatcher = get_event_dispatcher()
    dispatcher.emit(channel_role("manager"), "approval:new", {"id": approval.id})
"""

from .channels import RESTAURANT_UNIT, channel_role, channel_unit, channel_user
from .event_schema import Event
from .publisher import EventDispatcher, RedisEventDispatcher, get_event_dispatcher
from .redis_pool import close_redis_sync_client, get_redis_sync_client

__all__ = [
    "RESTAURANT_UNIT",
    "channel_role",
    "channel_unit",
    "channel_user",
    "Event",
    "EventDispatcher",
    "RedisEventDispatcher",
    "get_event_dispatcher",
    "close_redis_sync_client",
    "get_redis_sync_client",
]
