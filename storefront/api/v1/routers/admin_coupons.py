import logging
import secrets
import string
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.security import require_admin
from storefront.db.session import get_db
from storefront import models
from storefront.schemas.admin import (
    CouponCreate,
    CouponGenerateRequest,
    CouponGenerateResponse,
    CouponOut,
    CouponUpdate,
)
from storefront.services.pricing.types import DISCOUNT_TYPES, PERCENTAGE, normalize_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/coupons", tags=["admin"])


def _gen_code(prefix: str, length: int) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return normalize_code(prefix) + "".join(secrets.choice(alphabet) for _ in range(length))


def _check_discount(discount_type: str, value: Optional[float]) -> None:
    if discount_type not in DISCOUNT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid discount_type. Must be 'percentage' or 'fixed'")
    if value is not None:
        if value <= 0:
            raise HTTPException(status_code=400, detail="Value must be greater than 0")
        if discount_type == PERCENTAGE and value > 100:
            raise HTTPException(status_code=400, detail="Percentage cannot exceed 100")


def _get_coupon(db: Session, code: str) -> models.Coupon:
    coupon = db.query(models.Coupon).filter(func.upper(models.Coupon.code) == normalize_code(code)).first()
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return coupon


@router.post("/generate", response_model=CouponGenerateResponse)
def generate_coupons(req: CouponGenerateRequest, db: Session = Depends(get_db), admin=Depends(require_admin)):
    if req.length <= 0 or req.count <= 0:
        raise HTTPException(status_code=400, detail="Invalid length or count")
    _check_discount(req.discount_type, req.discount_value)

    # create batch record
    batch = models.CouponBatch(prefix=normalize_code(req.prefix), length=req.length, count=req.count, created_by=admin.id)
    db.add(batch)
    db.commit()
    db.refresh(batch)

    created = 0
    attempts = 0
    max_attempts = req.count * settings.COUPON_CODE_MAX_ATTEMPTS
    while created < req.count and attempts < max_attempts:
        attempts += 1
        code = _gen_code(req.prefix, req.length)
        if db.query(models.Coupon.id).filter(models.Coupon.code == code).first():
            logger.warning(f"Coupon code collision for batch {batch.id}, regenerating")
            continue
        coupon = models.Coupon(
            code=code,
            discount_type=req.discount_type,
            discount_value=req.discount_value,
            is_active=req.is_active,
            starts_at=req.starts_at,
            expires_at=req.expires_at,
            max_uses=req.max_uses,
            min_order_amount=req.min_order_amount,
            batch_id=batch.id,
            created_by=admin.id,
        )
        db.add(coupon)
        try:
            db.commit()
            created += 1
        except IntegrityError:
            db.rollback()
            logger.warning(f"Coupon code collision at insert for batch {batch.id}, regenerating")

    if created < req.count:
        logger.error(f"Batch {batch.id}: only {created} of {req.count} coupons generated after {attempts} attempts")
    return CouponGenerateResponse(batch_id=batch.id, generated=created, prefix=batch.prefix, length=req.length)


@router.post("", response_model=CouponOut)
def create_coupon(payload: CouponCreate, db: Session = Depends(get_db), admin=Depends(require_admin)):
    _check_discount(payload.discount_type, payload.discount_value)
    code = normalize_code(payload.code)
    if db.query(models.Coupon.id).filter(func.upper(models.Coupon.code) == code).first():
        raise HTTPException(status_code=400, detail="Coupon code already exists")

    coupon = models.Coupon(
        code=code,
        discount_type=payload.discount_type,
        discount_value=payload.discount_value,
        min_order_amount=payload.min_order_amount,
        max_uses=payload.max_uses,
        is_active=payload.is_active,
        starts_at=payload.starts_at,
        expires_at=payload.expires_at,
        created_by=admin.id,
    )
    db.add(coupon)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Coupon code already exists")
    db.refresh(coupon)
    return coupon


@router.get("", response_model=List[CouponOut])
def list_coupons(
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    """list all coupons"""
    q = db.query(models.Coupon)
    if active is not None:
        q = q.filter(models.Coupon.is_active == active)
    return q.order_by(models.Coupon.created_at.desc(), models.Coupon.id.desc()).all()


@router.get("/{code}", response_model=CouponOut)
def get_coupon(code: str, db: Session = Depends(get_db), admin=Depends(require_admin)):
    return _get_coupon(db, code)


@router.put("/{code}", response_model=CouponOut)
def update_coupon(
    code: str,
    payload: CouponUpdate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    """update a coupon"""
    coupon = _get_coupon(db, code)

    discount_type = payload.discount_type or coupon.discount_type
    if payload.discount_type is not None or payload.discount_value is not None:
        _check_discount(discount_type, payload.discount_value)

    data = payload.dict(exclude_unset=True)
    if "max_uses" in data and data["max_uses"] is not None and data["max_uses"] < coupon.uses_count:
        raise HTTPException(status_code=400, detail="max_uses cannot be below the current usage count")
    for field, value in data.items():
        setattr(coupon, field, value)

    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


@router.delete("/{code}")
def delete_coupon(code: str, db: Session = Depends(get_db), admin=Depends(require_admin)):
    """delete a coupon"""
    coupon = _get_coupon(db, code)

    # used coupons stay for order history
    if coupon.uses_count > 0:
        raise HTTPException(status_code=400, detail="Cannot delete coupon that has been used. Consider deactivating instead.")

    db.delete(coupon)
    db.commit()
    return {"message": "Coupon deleted successfully"}
