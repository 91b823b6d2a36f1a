"""
Value types shared by the pricing core.

Snapshots are read-only copies of store records handed to the pricing
functions by the repositories, so the core never touches ORM objects.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Optional, Union

from .money import ZERO


# promotion scopes
SITE_WIDE = "SITE_WIDE"
CATEGORY = "CATEGORY"
PRODUCT = "PRODUCT"
BRAND = "BRAND"
PROMOTION_TYPES = (SITE_WIDE, CATEGORY, PRODUCT, BRAND)

# discount kinds (promotions and coupons)
PERCENTAGE = "percentage"
FIXED = "fixed"
DISCOUNT_TYPES = (PERCENTAGE, FIXED)

# gift card statuses
ACTIVE = "ACTIVE"
REDEEMED = "REDEEMED"
EXPIRED = "EXPIRED"
CANCELLED = "CANCELLED"
GIFT_CARD_STATUSES = (ACTIVE, REDEEMED, EXPIRED, CANCELLED)

# shipping rate types
RATE_FLAT = "flat"
RATE_WEIGHT_BASED = "weight_based"
RATE_PRICE_BASED = "price_based"
RATE_FREE = "free"
RATE_TYPES = (RATE_FLAT, RATE_WEIGHT_BASED, RATE_PRICE_BASED, RATE_FREE)


def normalize_code(code: str) -> str:
    """coupon and gift card codes compare case-insensitively."""
    return code.strip().upper()


@dataclass(frozen=True)
class CartLineItem:
    product_id: int
    quantity: int
    unit_price: Optional[Decimal] = None  # snapshot the cart was built with
    selected_options: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Destination:
    country: str
    region: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    line1: Optional[str] = None
    name: Optional[str] = None


@dataclass
class PricingOptions:
    coupon_code: Optional[str] = None
    gift_card_codes: List[str] = field(default_factory=list)
    destination: Optional[Destination] = None
    now: Optional[datetime] = None


@dataclass(frozen=True)
class CatalogEntry:
    product_id: int
    title: str
    price: Decimal
    discount: Decimal  # percent
    stock: int
    is_active: bool
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    weight: Decimal = ZERO


@dataclass(frozen=True)
class PromotionSnapshot:
    id: int
    name: str
    type: str
    discount_type: str
    discount_value: Decimal
    starts_at: datetime
    ends_at: datetime
    is_active: bool
    created_at: datetime
    product_ids: FrozenSet[int] = frozenset()
    category_ids: FrozenSet[int] = frozenset()
    brand_ids: FrozenSet[int] = frozenset()
    badge_text: Optional[str] = None


@dataclass(frozen=True)
class CouponSnapshot:
    id: int
    code: str
    discount_type: str
    discount_value: Decimal
    min_order_amount: Optional[Decimal]
    max_uses: Optional[int]
    uses_count: int
    is_active: bool
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class GiftCardSnapshot:
    id: int
    code: str
    initial_amount: Decimal
    balance: Decimal
    status: str
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class ShippingZoneSnapshot:
    id: int
    name: str
    countries: FrozenSet[str]
    is_active: bool = True


@dataclass(frozen=True)
class ShippingRateSnapshot:
    id: int
    zone_id: int
    name: str
    type: str
    price: Decimal
    min_order_amount: Optional[Decimal] = None
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    is_active: bool = True


@dataclass(frozen=True)
class StoreSettingsSnapshot:
    currency: str = "USD"
    tax_enabled: bool = False
    tax_rate: Decimal = ZERO  # percent
    tax_included: bool = False
    tax_shipping: bool = False
    gift_cards_cover_shipping: bool = True
    min_order_amount: Optional[Decimal] = None
    track_inventory: bool = True


# --- results ---

@dataclass
class LineDiscount:
    product_id: int
    source: str  # product|promotion
    amount: Decimal
    promotion_id: Optional[int] = None
    label: Optional[str] = None


@dataclass
class PricedLine:
    product_id: int
    title: str
    quantity: int
    unit_price: Decimal
    gross: Decimal
    product_discount: Decimal
    promotion_discount: Decimal
    line_total: Decimal
    weight: Decimal = ZERO
    promotion_id: Optional[int] = None
    selected_options: Dict[str, str] = field(default_factory=dict)


@dataclass
class Rejection:
    kind: str
    code: str
    detail: Optional[str] = None


@dataclass
class GiftCardAllocation:
    gift_card_id: int
    code: str
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal


@dataclass
class ShippingQuote:
    rate_id: int
    zone_id: int
    name: str
    cost: Decimal
    min_days: Optional[int] = None
    max_days: Optional[int] = None


@dataclass(frozen=True)
class CouponUsageIntent:
    coupon_id: int
    code: str


@dataclass(frozen=True)
class GiftCardDebitIntent:
    gift_card_id: int
    code: str
    amount: Decimal
    expected_balance: Decimal


@dataclass(frozen=True)
class StockDecrementIntent:
    product_id: int
    quantity: int


Intent = Union[CouponUsageIntent, GiftCardDebitIntent, StockDecrementIntent]


@dataclass
class PricingResult:
    currency: str
    lines: List[PricedLine]
    subtotal: Decimal
    line_discounts: List[LineDiscount]
    promotion_discount: Decimal
    coupon_discount: Decimal
    merchandise_total: Decimal
    gift_card_applied: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    tax_included: bool
    grand_total: Decimal
    applied_coupon_code: Optional[str] = None
    applied_coupon_id: Optional[int] = None
    applied_gift_card_codes: List[str] = field(default_factory=list)
    gift_card_allocations: List[GiftCardAllocation] = field(default_factory=list)
    shipping_rate: Optional[ShippingQuote] = None
    rejections: List[Rejection] = field(default_factory=list)
    intents: List[Intent] = field(default_factory=list)
    meets_minimum_order: bool = True

    def to_dict(self) -> Dict[str, Any]:
        def money(v: Decimal) -> float:
            return float(v)

        return {
            "currency": self.currency,
            "lines": [
                {
                    "product_id": ln.product_id,
                    "title": ln.title,
                    "quantity": ln.quantity,
                    "unit_price": money(ln.unit_price),
                    "product_discount": money(ln.product_discount),
                    "promotion_discount": money(ln.promotion_discount),
                    "promotion_id": ln.promotion_id,
                    "line_total": money(ln.line_total),
                    "selected_options": dict(ln.selected_options),
                }
                for ln in self.lines
            ],
            "subtotal": money(self.subtotal),
            "line_discounts": [
                {
                    "product_id": d.product_id,
                    "source": d.source,
                    "amount": money(d.amount),
                    "promotion_id": d.promotion_id,
                    "label": d.label,
                }
                for d in self.line_discounts
            ],
            "promotion_discount": money(self.promotion_discount),
            "coupon_discount": money(self.coupon_discount),
            "merchandise_total": money(self.merchandise_total),
            "gift_card_applied": money(self.gift_card_applied),
            "gift_card_allocations": [
                {
                    "code": a.code,
                    "amount": money(a.amount),
                    "balance_after": money(a.balance_after),
                }
                for a in self.gift_card_allocations
            ],
            "shipping_cost": money(self.shipping_cost),
            "shipping_rate": None if self.shipping_rate is None else {
                "rate_id": self.shipping_rate.rate_id,
                "name": self.shipping_rate.name,
                "cost": money(self.shipping_rate.cost),
                "min_days": self.shipping_rate.min_days,
                "max_days": self.shipping_rate.max_days,
            },
            "tax_amount": money(self.tax_amount),
            "tax_included": self.tax_included,
            "grand_total": money(self.grand_total),
            "applied_coupon_code": self.applied_coupon_code,
            "applied_gift_card_codes": list(self.applied_gift_card_codes),
            "rejections": [
                {"kind": r.kind, "code": r.code, "detail": r.detail}
                for r in self.rejections
            ],
            "meets_minimum_order": self.meets_minimum_order,
        }
