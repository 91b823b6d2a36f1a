"""Shared pytest fixtures for the storefront pricing tests."""

import os

# must be set before storefront.db.session builds its engine
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront import models
from storefront.core.security import create_access_token
from storefront.db.base import Base
from storefront.db.session import SessionLocal, engine
from storefront.main import app


NOW = datetime(2026, 3, 10, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def db():
    """Fresh in-memory schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def user(db):
    u = models.User(full_name="Test Shopper", email="shopper@example.com", role="user")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def admin(db):
    u = models.User(full_name="Test Admin", email="admin@example.com", role="admin")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def user_headers(user):
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_access_token(str(admin.id), role='admin')}"}


@pytest.fixture
def store(db):
    """Store with 8% exclusive tax."""
    row = models.StoreSettings(
        currency="USD",
        tax_enabled=True,
        tax_rate=Decimal("8.00"),
        tax_included=False,
        tax_shipping=False,
        gift_cards_cover_shipping=True,
        track_inventory=True,
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def product(db):
    p = models.Product(title="Walnut Desk", price=Decimal("100.00"), stock=5, weight=Decimal("12.000"))
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def flat_shipping(db):
    """US zone with a flat $5 rate."""
    zone = models.ShippingZone(name="Domestic", countries=["US"])
    db.add(zone)
    db.flush()
    rate = models.ShippingRate(zone_id=zone.id, name="Standard", type="flat", price=Decimal("5.00"),
                               min_days=3, max_days=5)
    db.add(rate)
    db.commit()
    return rate


@pytest.fixture
def site_wide_promotion(db):
    promo = models.Promotion(
        name="Spring sale",
        type="SITE_WIDE",
        discount_type="percentage",
        discount_value=Decimal("10"),
        starts_at=datetime.utcnow() - timedelta(days=1),
        ends_at=datetime.utcnow() + timedelta(days=1),
    )
    db.add(promo)
    db.commit()
    return promo


@pytest.fixture
def save10(db):
    coupon = models.Coupon(code="SAVE10", discount_type="fixed", discount_value=Decimal("10.00"),
                           min_order_amount=Decimal("50.00"))
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


@pytest.fixture
def gift_card(db):
    card = models.GiftCard(code="TEST-CARD-0000-0001", initial_amount=Decimal("25.00"),
                           balance=Decimal("25.00"), status="ACTIVE")
    db.add(card)
    db.commit()
    db.refresh(card)
    return card
