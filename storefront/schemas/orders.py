from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel

from .promo_cart import CartItem, DestinationIn


class OrderCreateRequest(BaseModel):
    items: List[CartItem]
    coupon_code: Optional[str] = None
    gift_card_codes: List[str] = []
    destination: DestinationIn  # orders always quote shipping


class OrderItemOut(BaseModel):
    id: int
    product_id: Optional[int]
    title_snapshot: str
    qty: int
    unit_price: float
    discount_amount: float
    line_total: float
    selected_options: Optional[Dict[str, str]] = None

    class Config:
        from_attributes = True


class OrderGiftCardRedemptionOut(BaseModel):
    code: str
    amount: float

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: int
    number: str
    status: str
    currency: str
    subtotal: float
    promotion_discount: float
    coupon_discount: float
    gift_card_applied: float
    shipping_cost: float
    tax_amount: float
    tax_included: bool
    grand_total: float
    coupon_code: Optional[str] = None
    shipping_name: Optional[str] = None
    address_line1: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    created_at: datetime
    items: List[OrderItemOut]
    gift_card_redemptions: List[OrderGiftCardRedemptionOut] = []

    class Config:
        from_attributes = True
