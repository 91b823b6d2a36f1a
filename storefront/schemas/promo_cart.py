from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class CartItem(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)
    unit_price: Optional[float] = None  # price the cart was built with; a mismatch is a stale cart
    selected_options: Optional[Dict[str, str]] = None


class DestinationIn(BaseModel):
    country: str = Field(min_length=2, max_length=2)
    region: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    line1: Optional[str] = None
    name: Optional[str] = None


class PriceRequest(BaseModel):
    items: List[CartItem]
    coupon_code: Optional[str] = None
    gift_card_codes: List[str] = []
    destination: Optional[DestinationIn] = None


class PriceDetailsLine(BaseModel):
    product_id: int
    title: str
    quantity: int
    unit_price: float
    product_discount: float
    promotion_discount: float
    promotion_id: Optional[int] = None
    line_total: float
    selected_options: Dict[str, str] = {}


class LineDiscountOut(BaseModel):
    product_id: int
    source: str  # product|promotion
    amount: float
    promotion_id: Optional[int] = None
    label: Optional[str] = None


class GiftCardAllocationOut(BaseModel):
    code: str
    amount: float
    balance_after: float


class ShippingRateQuote(BaseModel):
    rate_id: int
    name: str
    cost: float
    min_days: Optional[int] = None
    max_days: Optional[int] = None


class RejectionOut(BaseModel):
    kind: str
    code: Optional[str] = None
    detail: Optional[str] = None


class PriceResponse(BaseModel):
    currency: str
    lines: List[PriceDetailsLine]
    subtotal: float
    line_discounts: List[LineDiscountOut]
    promotion_discount: float
    coupon_discount: float
    merchandise_total: float
    gift_card_applied: float
    gift_card_allocations: List[GiftCardAllocationOut]
    shipping_cost: float
    shipping_rate: Optional[ShippingRateQuote] = None
    tax_amount: float
    tax_included: bool
    grand_total: float
    applied_coupon_code: Optional[str] = None
    applied_gift_card_codes: List[str] = []
    rejections: List[RejectionOut] = []
    meets_minimum_order: bool = True


class PromoValidateRequest(BaseModel):
    code: Optional[str] = None
    subtotal: float = Field(ge=0)


class PromoValidateResponse(BaseModel):
    valid: bool
    discount: float
    reason: Optional[str] = None
    code: Optional[str] = None
