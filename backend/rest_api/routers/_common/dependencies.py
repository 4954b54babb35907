"""
FastAPI dependencies that assemble domain services for a request.

Tests override get_db, get_event_dispatcher and get_notification_service
to run the full stack against SQLite with recording fakes.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from rest_api.services.domain import (
    ApprovalService,
    AuditService,
    NotificationService,
    OrderService,
)
from shared.infrastructure.db import get_db
from shared.infrastructure.events import EventDispatcher, get_event_dispatcher


def get_notification_service(
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> NotificationService:
    return NotificationService(dispatcher)


def get_order_service(
    db: Session = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
    notifier: NotificationService = Depends(get_notification_service),
) -> OrderService:
    return OrderService(db, dispatcher, notifier)


def get_approval_service(
    db: Session = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
    notifier: NotificationService = Depends(get_notification_service),
) -> ApprovalService:
    return ApprovalService(db, dispatcher, notifier)


def get_audit_service(db: Session = Depends(get_db)) -> AuditService:
    return AuditService(db)
