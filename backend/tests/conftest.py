"""
Pytest configuration and fixtures for backend tests.

Everything runs against SQLite in-memory with recording fakes standing in
for Redis and SMTP.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rest_api.main import app
from rest_api.models import Base, MenuItem, User
from rest_api.routers._common import get_notification_service
from rest_api.services.domain import (
    ApprovalService,
    AuditService,
    NotificationService,
    OrderService,
)
from shared.config.constants import Roles
from shared.infrastructure.db import get_db
from shared.infrastructure.events import get_event_dispatcher
from shared.security.auth import sign_jwt
from shared.utils.schemas import OrderCreate, OrderItemInput


SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingDispatcher:
    """EventDispatcher that keeps every emitted event in memory."""

    def __init__(self):
        self.events: list[tuple[str, str, dict]] = []

    def emit(self, channel, event_name, payload):
        self.events.append((channel, event_name, payload))

    def named(self, event_name):
        return [(channel, payload) for channel, name, payload in self.events if name == event_name]


class RecordingEmailSender:
    """EmailSender stand-in that accepts every message."""

    configured = True

    def __init__(self):
        self.sent: list[dict] = []

    def send(self, to, subject, html_body, text_body=None):
        self.sent.append({"to": to, "subject": subject, "html": html_body})
        return True


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def notifier(dispatcher, email_sender):
    return NotificationService(dispatcher, email_sender=email_sender)


@pytest.fixture
def order_service(db_session, dispatcher, notifier):
    return OrderService(db_session, dispatcher, notifier)


@pytest.fixture
def approval_service(db_session, dispatcher, notifier, order_service):
    return ApprovalService(db_session, dispatcher, notifier, orders=order_service)


@pytest.fixture
def audit_service(db_session):
    return AuditService(db_session)


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def seed_users(db_session):
    """One user per role, keyed by role name."""
    users = {
        role: User(email=f"{role}@test.com", full_name=f"Test {role.replace('_', ' ').title()}", role=role)
        for role in (Roles.ADMIN, Roles.MANAGER, Roles.STAFF, Roles.CUSTOMER)
    }
    db_session.add_all(users.values())
    db_session.commit()
    return users


@pytest.fixture
def seed_menu(db_session):
    """Two available items and one that is sold out."""
    items = {
        "burger": MenuItem(name="Burger", price_cents=1250, module_id="kitchen", prep_time_minutes=12),
        "fries": MenuItem(name="Fries", price_cents=450, module_id="kitchen", prep_time_minutes=5),
        "soup": MenuItem(name="Soup of the day", price_cents=800, is_available=False),
    }
    db_session.add_all(items.values())
    db_session.commit()
    return items


@pytest.fixture
def make_order(order_service, seed_menu, seed_users):
    """Factory placing a burger-and-fries order for the test customer."""

    def _make_order(order_type="dine_in", customer=True, email="guest@test.com"):
        request = OrderCreate(
            items=[
                OrderItemInput(menu_item_id=seed_menu["burger"].id, quantity=2),
                OrderItemInput(menu_item_id=seed_menu["fries"].id, quantity=1),
            ],
            order_type=order_type,
            customer_id=seed_users[Roles.CUSTOMER].id if customer else None,
            customer_name="Test Customer",
            customer_email=email,
        )
        return order_service.create_order(request, actor_id=seed_users[Roles.STAFF].id)

    return _make_order


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture(scope="function")
def client(db_session, dispatcher, notifier):
    """
    Test client with the database, dispatcher and notifier overridden.
    The lifespan is not run.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_notification_service] = lambda: notifier

    yield TestClient(app)

    app.dependency_overrides.clear()


def token_for(user: User) -> str:
    return sign_jwt({"sub": user.id, "email": user.email, "roles": [user.role]})


@pytest.fixture
def auth_headers(seed_users):
    """Authorization headers keyed by role."""
    return {
        role: {"Authorization": f"Bearer {token_for(user)}"}
        for role, user in seed_users.items()
    }
