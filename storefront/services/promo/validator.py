from datetime import datetime
from typing import Optional
from decimal import Decimal

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from storefront import models
from storefront.services.pricing.errors import (
    COUPON_BELOW_MINIMUM,
    COUPON_EXHAUSTED,
    COUPON_EXPIRED,
    COUPON_NOT_FOUND,
)
from storefront.services.pricing.money import ZERO, percent_of, round_money, to_decimal
from storefront.services.pricing.types import CouponSnapshot, PERCENTAGE, normalize_code


class CouponRepository:
    """base interface for coupon lookups and usage accounting."""

    def find_by_code(self, code: str) -> Optional[CouponSnapshot]:  # pragma: no cover
        raise NotImplementedError

    def increment_usage(self, coupon_id: int) -> bool:  # pragma: no cover
        raise NotImplementedError


class SqlCouponRepository(CouponRepository):
    def __init__(self, db: Session):
        self.db = db

    def find_by_code(self, code: str) -> Optional[CouponSnapshot]:
        coupon = (
            self.db.query(models.Coupon)
            .filter(func.upper(models.Coupon.code) == normalize_code(code))
            .first()
        )
        if not coupon:
            return None
        return CouponSnapshot(
            id=coupon.id,
            code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=to_decimal(coupon.discount_value),
            min_order_amount=None if coupon.min_order_amount is None else to_decimal(coupon.min_order_amount),
            max_uses=coupon.max_uses,
            uses_count=coupon.uses_count or 0,
            is_active=bool(coupon.is_active),
            starts_at=coupon.starts_at,
            expires_at=coupon.expires_at,
        )

    def increment_usage(self, coupon_id: int) -> bool:
        """count one use unless the coupon got exhausted or switched off meanwhile."""
        res = self.db.execute(
            update(models.Coupon)
            .where(
                models.Coupon.id == coupon_id,
                models.Coupon.is_active == True,  # noqa: E712
                or_(models.Coupon.max_uses.is_(None), models.Coupon.uses_count < models.Coupon.max_uses),
            )
            .values(uses_count=models.Coupon.uses_count + 1)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1


class CouponValidationResult:
    def __init__(self, valid: bool, discount: Decimal = ZERO, reason: Optional[str] = None,
                 coupon: Optional[CouponSnapshot] = None):
        self.valid = valid
        self.discount = to_decimal(discount)
        self.reason = reason
        self.coupon = coupon

    def dict(self):
        return {
            "valid": self.valid,
            "discount": float(self.discount),
            "reason": self.reason,
            "code": self.coupon.code if self.coupon else None,
        }


def validate_coupon(coupon: Optional[CouponSnapshot], subtotal: Decimal, now: datetime) -> CouponValidationResult:
    """check a coupon against a (post-promotion) subtotal. Never counts a use."""
    # deactivated coupons are reported the same as unknown ones
    if not coupon or not coupon.is_active:
        return CouponValidationResult(valid=False, reason=COUPON_NOT_FOUND)

    if coupon.starts_at and now < coupon.starts_at:
        return CouponValidationResult(valid=False, reason=COUPON_EXPIRED, coupon=coupon)
    if coupon.expires_at and now > coupon.expires_at:
        return CouponValidationResult(valid=False, reason=COUPON_EXPIRED, coupon=coupon)

    if coupon.max_uses is not None and coupon.uses_count >= coupon.max_uses:
        return CouponValidationResult(valid=False, reason=COUPON_EXHAUSTED, coupon=coupon)

    if coupon.min_order_amount is not None and subtotal < coupon.min_order_amount:
        return CouponValidationResult(valid=False, reason=COUPON_BELOW_MINIMUM, coupon=coupon)

    if coupon.discount_type == PERCENTAGE:
        discount = percent_of(subtotal, coupon.discount_value)
    else:
        discount = round_money(coupon.discount_value)

    # ensure non-negative total
    discount = min(discount, subtotal)
    return CouponValidationResult(valid=True, discount=discount, coupon=coupon)


def calculate_discount(repo: CouponRepository, code: Optional[str], subtotal: Decimal,
                       now: Optional[datetime] = None) -> CouponValidationResult:
    if not code or not code.strip():
        return CouponValidationResult(valid=True, discount=ZERO)
    now = now or datetime.utcnow()
    return validate_coupon(repo.find_by_code(code), to_decimal(subtotal), now)
