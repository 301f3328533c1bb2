"""
Test configuration and fixtures for Meetspace.
"""

import pytest
from contextlib import contextmanager
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from fastapi import HTTPException, status
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event as sa_event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from meetspace.main import app
from meetspace.api.dependencies import get_cache_manager, get_current_user, get_optional_current_user
from meetspace.db.database import get_db
from meetspace.db.repositories import EventRepository
from meetspace.models.base import Base, utcnow
from meetspace.models.order import Order, OrderLineItem, OrderStatus, OrderPaymentStatus, OrderType
from meetspace.services.notification_service import notification_service

SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@sa_event.listens_for(engine, "connect")
def enforce_foreign_keys(dbapi_connection, _):
    """SQLite ignores foreign keys unless asked per connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)

ORGANIZER = {"user_id": 1, "email": "organizer@example.com", "name": "Olga Organizer", "role": "user"}
ATTENDEE = {"user_id": 2, "email": "attendee@example.com", "name": "Abel Attendee", "role": "user"}
GUEST = {"user_id": 3, "email": "guest@example.com", "name": "Gina Guest", "role": "user"}


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host settings out of the tests and never reach Celery."""
    for key in (
        "BASE_URL", "DIRECT_TICKET_REDIRECT", "JAAS_APP_ID", "JAAS_API_KEY_ID", "JAAS_PRIVATE_KEY",
        "OPENAI_API_KEY", "CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET",
        "ZERO_TOKEN",
    ):
        monkeypatch.delenv(key, raising=False)
    notification_service.disable()
    yield
    notification_service.enable()


@pytest.fixture
def db_session():
    """Create a database session for testing."""
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


class AuthState:
    """Mutable current user for API tests; None means anonymous."""

    def __init__(self):
        self.user = None


@pytest.fixture
def auth():
    return AuthState()


@pytest.fixture
def client(db_session, auth):
    """Test client sharing the test session, without Redis."""

    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    async def override_get_current_user():
        if auth.user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return auth.user

    async def override_get_optional_current_user():
        return auth.user

    async def override_get_cache_manager():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_optional_current_user] = override_get_optional_current_user
    app.dependency_overrides[get_cache_manager] = override_get_cache_manager

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def make_event(db_session):
    """Factory for persisted events; keyword arguments override columns."""

    def _make_event(restricted_to=(), ticket_tiers=(), **overrides):
        data = {
            "title": "Python Meetup",
            "description": "Talks and networking",
            "category": "tech",
            "status": "upcoming",
            "date": utcnow() + timedelta(days=7),
            "is_virtual": False,
            "location_address": "Bole Road",
            "location_city": "Addis Ababa",
            "location_country": "Ethiopia",
            "price": Decimal("0"),
            "currency": "ETB",
            "max_attendees": 100,
            "visibility_status": "public",
            "organizer_id": ORGANIZER["user_id"],
            "organizer_name": ORGANIZER["name"],
            "organizer_email": ORGANIZER["email"],
        }
        data.update(overrides)
        event = EventRepository(db_session).create(
            data, restricted_to=restricted_to, ticket_tiers=ticket_tiers
        )
        db_session.commit()
        return event

    return _make_event


@pytest.fixture
def make_order(db_session):
    """Factory for orders with a single line item."""

    def _make_order(event, user=ATTENDEE, quantity=1, **overrides):
        data = {
            "user_id": user["user_id"],
            "event_id": event.id,
            "first_name": "Abel",
            "last_name": "Attendee",
            "email": user["email"],
            "amount": Decimal("0"),
            "currency": event.currency,
            "status": OrderStatus.COMPLETED.value,
            "payment_status": OrderPaymentStatus.FREE.value,
            "order_type": OrderType.FREE_LOCATION_EVENT_RSVP.value,
        }
        data.update(overrides)
        order = Order(**data)
        order.line_items = [OrderLineItem(name="General Admission", price=Decimal("0"), quantity=quantity)]
        db_session.add(order)
        db_session.commit()
        return order

    return _make_order


@pytest.fixture
def fake_chapa():
    """Stand-in for the Chapa HTTP client."""
    client = MagicMock()
    client.ensure_configured = AsyncMock()
    client.initialize_transaction = AsyncMock(return_value={
        "status": "success",
        "message": "Hosted Link",
        "data": {"checkout_url": "https://checkout.chapa.co/checkout/payment/abc123"},
    })
    client.verify_transaction = AsyncMock(return_value={
        "status": "success",
        "message": "Payment details",
        "data": {
            "status": "success",
            "amount": "200.00",
            "currency": "ETB",
            "reference": "AP8fGh2",
        },
    })
    return client


@pytest.fixture
def paid_payment_request():
    """Checkout request body for two 100 ETB tickets."""

    def _request(event_id):
        return {
            "event_id": event_id,
            "email": ATTENDEE["email"],
            "amount": Decimal("200"),
            "currency": "ETB",
            "first_name": "Abel",
            "last_name": "Attendee",
            "phone": "0911000000",
            "callback_url": "https://api.meetspace.test/api/v1/payment/callback",
            "tickets": [{"ticket_id": "vip", "name": "VIP", "quantity": 2, "price": Decimal("100")}],
        }

    return _request


@pytest.fixture
def organizer():
    return dict(ORGANIZER)


@pytest.fixture
def attendee():
    return dict(ATTENDEE)


@pytest.fixture
def guest():
    return dict(GUEST)


@pytest.fixture
def worker_db_manager(db_session):
    """Database manager double whose sessions are the test session."""

    @contextmanager
    def get_session():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    manager = MagicMock()
    manager._initialized = True
    manager.get_session = get_session
    return manager
