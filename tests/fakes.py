"""In-memory repositories so the pricing core can be tested without a database."""

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from storefront.services.catalog.reader import CatalogReader
from storefront.services.giftcards.ledger import GiftCardRepository
from storefront.services.pricing.engine import PricingEngine
from storefront.services.pricing.types import (
    CatalogEntry,
    CouponSnapshot,
    GiftCardSnapshot,
    PromotionSnapshot,
    ShippingRateSnapshot,
    ShippingZoneSnapshot,
    StoreSettingsSnapshot,
    normalize_code,
)
from storefront.services.promo.resolver import PromotionRepository
from storefront.services.promo.validator import CouponRepository
from storefront.services.settings.store import StoreSettingsRepository
from storefront.services.shipping.rates import ShippingRepository


class FakeCatalog(CatalogReader):
    def __init__(self, *entries: CatalogEntry):
        self.entries = {e.product_id: e for e in entries}

    def get_price_and_stock(self, product_id: int) -> Optional[CatalogEntry]:
        return self.entries.get(product_id)


class FakePromotions(PromotionRepository):
    def __init__(self, *promotions: PromotionSnapshot):
        self.promotions = list(promotions)

    def list_active(self, now: datetime) -> List[PromotionSnapshot]:
        return [p for p in self.promotions if p.is_active and p.starts_at <= now < p.ends_at]


class FakeCoupons(CouponRepository):
    def __init__(self, *coupons: CouponSnapshot):
        self.coupons = {c.code: c for c in coupons}
        self.increments: List[int] = []

    def find_by_code(self, code: str) -> Optional[CouponSnapshot]:
        return self.coupons.get(normalize_code(code))

    def increment_usage(self, coupon_id: int) -> bool:
        for code, c in self.coupons.items():
            if c.id == coupon_id:
                if c.max_uses is not None and c.uses_count >= c.max_uses:
                    return False
                self.coupons[code] = replace(c, uses_count=c.uses_count + 1)
                self.increments.append(coupon_id)
                return True
        return False


class FakeGiftCards(GiftCardRepository):
    def __init__(self, *cards: GiftCardSnapshot):
        self.cards: Dict[str, GiftCardSnapshot] = {c.code: c for c in cards}

    def find_by_code(self, code: str) -> Optional[GiftCardSnapshot]:
        return self.cards.get(normalize_code(code))

    def decrement_balance(self, gift_card_id: int, amount: Decimal, expected_balance: Decimal,
                          now: Optional[datetime] = None) -> bool:
        for code, c in self.cards.items():
            if c.id == gift_card_id and c.balance == expected_balance and c.balance >= amount:
                self.cards[code] = replace(c, balance=c.balance - amount)
                return True
        return False


class FakeShipping(ShippingRepository):
    def __init__(self, zones=(), rates=()):
        self.zones = list(zones)
        self.rates = list(rates)

    def list_zones_and_rates(self):
        return self.zones, self.rates


class FakeStoreSettings(StoreSettingsRepository):
    def __init__(self, settings: Optional[StoreSettingsSnapshot] = None):
        self.settings = settings or StoreSettingsSnapshot()

    def get(self) -> StoreSettingsSnapshot:
        return self.settings


def product(product_id=1, price="100.00", discount="0", stock=10, **kw) -> CatalogEntry:
    return CatalogEntry(
        product_id=product_id,
        title=kw.pop("title", f"Product {product_id}"),
        price=Decimal(price),
        discount=Decimal(discount),
        stock=stock,
        is_active=kw.pop("is_active", True),
        **kw,
    )


def coupon(code="SAVE10", discount_type="fixed", value="10.00", min_order=None, max_uses=None,
           uses_count=0, **kw) -> CouponSnapshot:
    return CouponSnapshot(
        id=kw.pop("id", 1),
        code=code,
        discount_type=discount_type,
        discount_value=Decimal(value),
        min_order_amount=None if min_order is None else Decimal(min_order),
        max_uses=max_uses,
        uses_count=uses_count,
        is_active=kw.pop("is_active", True),
        **kw,
    )


def gift_card(code, balance, card_id=1, status="ACTIVE", expires_at=None, initial=None) -> GiftCardSnapshot:
    return GiftCardSnapshot(
        id=card_id,
        code=code,
        initial_amount=Decimal(initial or balance),
        balance=Decimal(balance),
        status=status,
        expires_at=expires_at,
    )


def zone(zone_id=1, countries=("US",), is_active=True) -> ShippingZoneSnapshot:
    return ShippingZoneSnapshot(id=zone_id, name=f"Zone {zone_id}", countries=frozenset(countries),
                                is_active=is_active)


def rate(rate_id=1, zone_id=1, type="flat", price="5.00", min_order=None, **kw) -> ShippingRateSnapshot:
    return ShippingRateSnapshot(
        id=rate_id,
        zone_id=zone_id,
        name=kw.pop("name", f"Rate {rate_id}"),
        type=type,
        price=Decimal(price),
        min_order_amount=None if min_order is None else Decimal(min_order),
        **kw,
    )


def make_engine(catalog=None, promotions=None, coupons=None, gift_cards=None, shipping=None,
                settings=None) -> PricingEngine:
    return PricingEngine(
        catalog=catalog or FakeCatalog(),
        promotions=promotions or FakePromotions(),
        coupons=coupons or FakeCoupons(),
        gift_cards=gift_cards or FakeGiftCards(),
        shipping=shipping or FakeShipping(),
        store_settings=FakeStoreSettings(settings),
    )
