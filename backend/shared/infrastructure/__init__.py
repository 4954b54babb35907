"""
Infrastructure module: Database, Redis/events and email.

Provides:
- Database sessions and transactions (db.py)
- Redis pub/sub event dispatcher (events/)
- SMTP email sending (email.py)
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    get_db,
    safe_commit,
)
from shared.infrastructure.events import (
    EventDispatcher,
    RedisEventDispatcher,
    get_event_dispatcher,
)

__all__ = [
    # db
    "engine",
    "SessionLocal",
    "get_db",
    "safe_commit",
    # events
    "EventDispatcher",
    "RedisEventDispatcher",
    "get_event_dispatcher",
]
