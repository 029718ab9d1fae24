"""Shared pytest fixtures for test suite"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("APP_URL", "https://reviews.example.com")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ.setdefault("CREDIT_PACKS", '{"plan_small": 10, "plan_medium": 50, "plan_large": 100}')

import pytest
from datetime import datetime, timedelta, timezone
from typing import Generator
from unittest.mock import Mock, patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
import fakeredis
import secrets

from reviewloop.main import app
from reviewloop.db import redis as redis_module
from reviewloop.db.session import get_db
from reviewloop.models import Base
from reviewloop.models.merchant import Merchant
from reviewloop.models.product_config import ProductConfig
from reviewloop.models.review import Review


# Resend test email addresses - use these in ALL tests to avoid fake addresses
# See: https://resend.com/docs/dashboard/emails/send-test-emails
RESEND_TEST_DELIVERED = "delivered@resend.dev"
RESEND_TEST_BOUNCED = "bounced@resend.dev"

ACTIVE_PROMO = {
    "id": "promo_123",
    "code": "THANKS20",
    "status": "active",
    "promo_type": "percentage",
    "amount_off": 20,
    "currency": "usd",
    "product": {"title": "Pro Plan"},
}

# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine with StaticPool for in-memory database
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def session_factory(db_session):
    """Factory for extra sessions on the test database, for simulating concurrent requests"""
    return TestSessionLocal


@pytest.fixture(scope="function")
def mock_redis():
    """Mock Redis client using fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, "_client", fake_redis):
        yield fake_redis


@pytest.fixture(scope="function", autouse=True)
def background_sessions(db_session):
    """Background webhook processing opens its own sessions; point them at the test database"""
    with patch("reviewloop.services.webhook_service.SessionLocal", TestSessionLocal):
        yield


@pytest.fixture(scope="function", autouse=True)
def mock_resend():
    """Mock Resend to avoid sending actual emails"""
    with patch("reviewloop.services.email_service.resend") as mock_resend_module:
        mock_resend_module.Emails.send = Mock(return_value={"id": "email_test123"})
        yield mock_resend_module


@pytest.fixture(scope="function", autouse=True)
def mock_promo():
    """Platform promo code lookup; returns an active 20% promo unless a test overrides it"""
    with patch("reviewloop.services.reward_service.retrieve_promo_code") as mock_retrieve:
        mock_retrieve.return_value = dict(ACTIVE_PROMO)
        yield mock_retrieve


@pytest.fixture(scope="function")
def mock_storage():
    """R2 storage that 'uploads' successfully"""
    storage = Mock()
    storage.upload_bytes = Mock(
        side_effect=lambda data, key, content_type=None: f"https://media.example.com/{key}"
    )
    with patch("reviewloop.services.review_service.get_r2_service", return_value=storage):
        yield storage


@pytest.fixture(scope="function")
def mock_access():
    """Platform access check; every token is an admin unless a test overrides it"""
    with patch("reviewloop.core.security.get_company_access_level", return_value="admin") as mock_level:
        yield mock_level


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database and mocked Redis"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    app.dependency_overrides[get_db] = override_get_db

    try:
        with patch("reviewloop.main.init_db"):
            with patch("reviewloop.main.initialize_otel", return_value=False):
                with patch("reviewloop.main.instrument_sqlalchemy"):
                    with TestClient(app) as test_client:
                        yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def merchant(db_session: Session) -> Merchant:
    """Merchant with 3 credits"""
    merchant = Merchant(company_id="biz_test123", name="Test Brand", email=RESEND_TEST_DELIVERED, credit_balance=3)
    db_session.add(merchant)
    db_session.commit()
    db_session.refresh(merchant)
    return merchant


@pytest.fixture(scope="function")
def product_config(db_session: Session, merchant: Merchant) -> ProductConfig:
    """Enabled product with an active promo reference"""
    config = ProductConfig(
        merchant_id=merchant.id,
        platform_product_id="prod_test123",
        product_name="Pro Plan",
        is_enabled=True,
        review_type="any",
        promo_code="promo_123",
        promo_code_name="THANKS20",
    )
    db_session.add(config)
    db_session.commit()
    db_session.refresh(config)
    return config


@pytest.fixture(scope="function")
def review_factory(db_session: Session):
    """Insert reviews directly, bypassing the request flow"""
    def make_review(product_config: ProductConfig, **overrides) -> Review:
        values = {
            "merchant_id": product_config.merchant_id,
            "product_config_id": product_config.id,
            "customer_email": RESEND_TEST_DELIVERED,
            "customer_name": "Jane Customer",
            "customer_platform_id": "user_test123",
            "status": "pending_submission",
            "submission_token": secrets.token_urlsafe(16),
            "token_expires_at": datetime.now(timezone.utc) + timedelta(days=7),
        }
        values.update(overrides)
        review = Review(**values)
        db_session.add(review)
        db_session.commit()
        db_session.refresh(review)
        return review
    return make_review


@pytest.fixture(scope="function")
def pending_review(review_factory, product_config: ProductConfig) -> Review:
    """Review waiting for the customer's upload"""
    return review_factory(product_config, submission_token="tok_pending_submission")


@pytest.fixture(scope="function")
def submitted_review(review_factory, product_config: ProductConfig) -> Review:
    """Review waiting for merchant approval"""
    return review_factory(
        product_config,
        submission_token="tok_pending_approval",
        status="pending_approval",
        file_url="https://media.example.com/1/1/file.jpg",
        file_type="photo",
        rating=5,
        submitted_at=datetime.now(timezone.utc),
    )


@pytest.fixture(scope="function")
def payment_event():
    """Builds payment.succeeded envelopes for a product purchase"""
    def build(event_id: str = "evt_test123", **data_overrides) -> dict:
        data = {
            "id": "pay_test123",
            "product": {"id": "prod_test123"},
            "plan": {"id": "plan_product_access"},
            "company": {"id": "biz_test123"},
            "user": {"id": "user_test123", "email": RESEND_TEST_DELIVERED, "name": "Jane Customer"},
            "metadata": {},
        }
        data.update(data_overrides)
        return {"id": event_id, "type": "payment.succeeded", "data": data}
    return build
