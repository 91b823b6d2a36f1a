from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


# coupons

class CouponCreate(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    discount_type: str = "percentage"  # percentage|fixed
    discount_value: float = Field(gt=0)
    min_order_amount: Optional[float] = None
    max_uses: Optional[int] = Field(default=None, ge=1)
    is_active: bool = True
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class CouponUpdate(BaseModel):
    discount_type: Optional[str] = None
    discount_value: Optional[float] = None
    min_order_amount: Optional[float] = None
    max_uses: Optional[int] = None
    is_active: Optional[bool] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class CouponGenerateRequest(BaseModel):
    prefix: str = ""
    length: int = 6
    count: int = 10
    discount_type: str = "percentage"
    discount_value: float = 10.0
    is_active: bool = True
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    min_order_amount: Optional[float] = None


class CouponGenerateResponse(BaseModel):
    batch_id: int
    generated: int
    prefix: str
    length: int


class CouponOut(BaseModel):
    id: int
    code: str
    discount_type: str
    discount_value: float
    min_order_amount: Optional[float] = None
    max_uses: Optional[int] = None
    uses_count: int
    is_active: bool
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    batch_id: Optional[int] = None
    created_at: datetime
    created_by: Optional[int] = None

    class Config:
        from_attributes = True


# promotions

class PromotionBase(BaseModel):
    name: str
    description: Optional[str] = None
    type: str = "SITE_WIDE"  # SITE_WIDE|CATEGORY|PRODUCT|BRAND
    discount_type: str = "percentage"
    discount_value: float = Field(gt=0)
    starts_at: datetime
    ends_at: datetime
    badge_text: Optional[str] = None
    is_active: bool = True
    product_ids: List[int] = []
    category_ids: List[int] = []
    brand_ids: List[int] = []


class PromotionCreate(PromotionBase):
    pass


class PromotionUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[float] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    badge_text: Optional[str] = None
    is_active: Optional[bool] = None
    product_ids: Optional[List[int]] = None
    category_ids: Optional[List[int]] = None
    brand_ids: Optional[List[int]] = None


class PromotionOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    type: str
    discount_type: str
    discount_value: float
    starts_at: datetime
    ends_at: datetime
    badge_text: Optional[str] = None
    is_active: bool
    product_ids: List[int] = []
    category_ids: List[int] = []
    brand_ids: List[int] = []
    created_at: datetime


# shipping

class ShippingZoneCreate(BaseModel):
    name: str
    countries: List[str] = []  # empty list matches every destination
    is_active: bool = True


class ShippingZoneUpdate(BaseModel):
    name: Optional[str] = None
    countries: Optional[List[str]] = None
    is_active: Optional[bool] = None


class ShippingRateCreate(BaseModel):
    name: str
    type: str = "flat"  # flat|weight_based|price_based|free
    price: float = Field(default=0, ge=0)
    min_order_amount: Optional[float] = None
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    is_active: bool = True


class ShippingRateUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    price: Optional[float] = None
    min_order_amount: Optional[float] = None
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    is_active: Optional[bool] = None


class ShippingRateOut(BaseModel):
    id: int
    zone_id: int
    name: str
    type: str
    price: float
    min_order_amount: Optional[float] = None
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    is_active: bool

    class Config:
        from_attributes = True


class ShippingZoneOut(BaseModel):
    id: int
    name: str
    countries: List[str]
    is_active: bool
    rates: List[ShippingRateOut] = []

    class Config:
        from_attributes = True


# store settings

class StoreSettingsOut(BaseModel):
    store_name: str
    currency: str
    currency_symbol: str
    tax_enabled: bool
    tax_rate: float
    tax_included: bool
    tax_shipping: bool
    gift_cards_cover_shipping: bool
    min_order_amount: Optional[float] = None
    track_inventory: bool

    class Config:
        from_attributes = True


class StoreSettingsUpdate(BaseModel):
    store_name: Optional[str] = None
    currency: Optional[str] = None
    currency_symbol: Optional[str] = None
    tax_enabled: Optional[bool] = None
    tax_rate: Optional[float] = Field(default=None, ge=0, le=100)
    tax_included: Optional[bool] = None
    tax_shipping: Optional[bool] = None
    gift_cards_cover_shipping: Optional[bool] = None
    min_order_amount: Optional[float] = None
    track_inventory: Optional[bool] = None
