import os
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone

# Settings are read once at import; pin the test values first.
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("TIMELINE_MAX_WORKERS", "1")

import pytest
from jose import jwt
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.db import Base

# Register UUID adapter for SQLite - store as string
sqlite3.register_adapter(uuid.UUID, lambda u: str(u))


# Monkey-patch SQLAlchemy's UUID type for SQLite compatibility
# This must happen before any models are imported
from sqlalchemy.sql import sqltypes

_original_uuid_bind_processor = sqltypes.Uuid.bind_processor
_original_uuid_result_processor = sqltypes.Uuid.result_processor


def _sqlite_uuid_bind_processor(self, dialect):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return str(value)
                return str(uuid.UUID(value)) if value else None
            return None
        return process
    return _original_uuid_bind_processor(self, dialect)


def _sqlite_uuid_result_processor(self, dialect, coltype):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return value
                return uuid.UUID(value) if value else None
            return None
        return process
    return _original_uuid_result_processor(self, dialect, coltype)


setattr(sqltypes.Uuid, "bind_processor", _sqlite_uuid_bind_processor)
setattr(sqltypes.Uuid, "result_processor", _sqlite_uuid_result_processor)

from backoffice import models  # noqa: E402,F401
from backoffice.models.admin import AdminRole, AdminUser  # noqa: E402
from backoffice.models.customer import (  # noqa: E402
    BillingSnapshot,
    Customer,
    PlanTier,
    SubscriptionStatus,
)
from backoffice.models.promo import PromoCode, PromoCodeType  # noqa: E402
from tests.mocks import FakeStripeClient  # noqa: E402


@pytest.fixture(scope="session")
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={
                "check_same_thread": False,
            },
            poolclass=StaticPool,
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    Base.metadata.create_all(engine)

    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def session_factory(db_session):
    """Factory for extra sessions sharing the test connection and transaction."""
    return sessionmaker(bind=db_session.get_bind(), autoflush=False, autocommit=False)


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex}@example.com"


@pytest.fixture()
def make_admin(db_session):
    def _make(role=AdminRole.super_admin, **fields):
        admin = AdminUser(
            email=fields.pop("email", _unique_email()),
            first_name=fields.pop("first_name", "Dana"),
            last_name=fields.pop("last_name", "Support"),
            role=role,
            **fields,
        )
        db_session.add(admin)
        db_session.commit()
        db_session.refresh(admin)
        return admin

    return _make


@pytest.fixture()
def admin_user(make_admin):
    return make_admin(AdminRole.super_admin)


@pytest.fixture()
def make_customer(db_session):
    def _make(
        plan_tier=PlanTier.free_trial,
        subscription_status=None,
        cancel_at_period_end=False,
        current_period_end=None,
        provider_customer_id="cus_test123",
        provider_subscription_id="sub_test123",
        **fields,
    ):
        customer = Customer(name=fields.pop("name", "Acme Realty"), plan_tier=plan_tier, **fields)
        db_session.add(customer)
        db_session.flush()
        if subscription_status is not None:
            db_session.add(
                BillingSnapshot(
                    customer_id=customer.id,
                    subscription_status=subscription_status,
                    cancel_at_period_end=cancel_at_period_end,
                    current_period_end=current_period_end,
                    provider_customer_id=provider_customer_id,
                    provider_subscription_id=provider_subscription_id,
                )
            )
        db_session.commit()
        db_session.refresh(customer)
        return customer

    return _make


@pytest.fixture()
def trial_customer(make_customer):
    return make_customer(
        name="Trial Realty",
        plan_tier=PlanTier.free_trial,
        created_at=datetime.now(timezone.utc) - timedelta(days=3),
    )


@pytest.fixture()
def paid_customer(make_customer):
    return make_customer(
        name="Paid Realty",
        plan_tier=PlanTier.solo_pro,
        subscription_status=SubscriptionStatus.active,
        current_period_end=datetime(2026, 11, 1, tzinfo=timezone.utc),
        has_ever_subscribed=True,
    )


@pytest.fixture()
def make_promo(db_session):
    def _make(code="TRIAL7", promo_type=PromoCodeType.extended_trial, **fields):
        if promo_type == PromoCodeType.extended_trial:
            fields.setdefault("free_days", 7)
        else:
            fields.setdefault("discount_percent", 20)
            fields.setdefault("duration_months", 3)
        promo = PromoCode(code=code, type=promo_type, **fields)
        db_session.add(promo)
        db_session.commit()
        db_session.refresh(promo)
        return promo

    return _make


@pytest.fixture()
def fake_provider():
    return FakeStripeClient()


def _make_access_token(admin, role=None, secret="test-secret", typ="access"):
    now = datetime.now(timezone.utc)
    role = role or admin.role
    payload = {
        "sub": str(admin.id),
        "role": getattr(role, "value", role),
        "typ": typ,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=15)).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture()
def access_token():
    return _make_access_token


@pytest.fixture()
def auth_headers(admin_user):
    return {"Authorization": f"Bearer {_make_access_token(admin_user)}"}


@pytest.fixture()
def client(db_session, session_factory, fake_provider):
    from fastapi.testclient import TestClient

    from backoffice.db import get_db
    from backoffice.main import app
    from backoffice.services.billing_provider import get_billing_provider
    from backoffice.services.timeline import get_session_factory

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_billing_provider] = lambda: fake_provider
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
