from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.core.security import require_admin
from storefront.db.session import get_db
from storefront import models
from storefront.schemas.admin import PromotionCreate, PromotionOut, PromotionUpdate
from storefront.services.pricing.types import DISCOUNT_TYPES, PERCENTAGE, PROMOTION_TYPES

router = APIRouter(prefix="/admin/promotions", tags=["admin"])


def _to_out(promo: models.Promotion) -> PromotionOut:
    return PromotionOut(
        id=promo.id,
        name=promo.name,
        description=promo.description,
        type=promo.type,
        discount_type=promo.discount_type,
        discount_value=float(promo.discount_value),
        starts_at=promo.starts_at,
        ends_at=promo.ends_at,
        badge_text=promo.badge_text,
        is_active=promo.is_active,
        product_ids=sorted(p.id for p in promo.products),
        category_ids=sorted(c.id for c in promo.categories),
        brand_ids=sorted(b.id for b in promo.brands),
        created_at=promo.created_at,
    )


def _load(db: Session, model, ids: Optional[List[int]], label: str) -> list:
    if not ids:
        return []
    rows = db.query(model).filter(model.id.in_(ids)).all()
    missing = set(ids) - {r.id for r in rows}
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown {label}: {sorted(missing)}")
    return rows


def _validate(promo: models.Promotion) -> None:
    if promo.type not in PROMOTION_TYPES:
        raise HTTPException(status_code=400, detail=f"Type must be one of: {', '.join(PROMOTION_TYPES)}")
    if promo.discount_type not in DISCOUNT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid discount_type. Must be 'percentage' or 'fixed'")
    if promo.discount_value is None or float(promo.discount_value) <= 0:
        raise HTTPException(status_code=400, detail="Value must be greater than 0")
    if promo.discount_type == PERCENTAGE and float(promo.discount_value) > 100:
        raise HTTPException(status_code=400, detail="Percentage cannot exceed 100")
    if promo.ends_at <= promo.starts_at:
        raise HTTPException(status_code=400, detail="ends_at must be after starts_at")


def _get_promotion(db: Session, promotion_id: int) -> models.Promotion:
    promo = db.get(models.Promotion, promotion_id)
    if not promo:
        raise HTTPException(status_code=404, detail="Promotion not found")
    return promo


@router.get("", response_model=List[PromotionOut])
def list_promotions(db: Session = Depends(get_db), admin=Depends(require_admin)):
    promos = db.query(models.Promotion).order_by(models.Promotion.created_at.desc(), models.Promotion.id.desc()).all()
    return [_to_out(p) for p in promos]


@router.post("", response_model=PromotionOut)
def create_promotion(payload: PromotionCreate, db: Session = Depends(get_db), admin=Depends(require_admin)):
    data = payload.dict(exclude={"product_ids", "category_ids", "brand_ids"})
    promo = models.Promotion(**data)
    promo.products = _load(db, models.Product, payload.product_ids, "products")
    promo.categories = _load(db, models.Category, payload.category_ids, "categories")
    promo.brands = _load(db, models.Brand, payload.brand_ids, "brands")
    _validate(promo)

    db.add(promo)
    db.commit()
    db.refresh(promo)
    return _to_out(promo)


@router.get("/{promotion_id}", response_model=PromotionOut)
def get_promotion(promotion_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    return _to_out(_get_promotion(db, promotion_id))


@router.put("/{promotion_id}", response_model=PromotionOut)
def update_promotion(
    promotion_id: int,
    payload: PromotionUpdate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    promo = _get_promotion(db, promotion_id)
    data = payload.dict(exclude_unset=True)

    if "product_ids" in data:
        promo.products = _load(db, models.Product, data.pop("product_ids"), "products")
    if "category_ids" in data:
        promo.categories = _load(db, models.Category, data.pop("category_ids"), "categories")
    if "brand_ids" in data:
        promo.brands = _load(db, models.Brand, data.pop("brand_ids"), "brands")
    for field, value in data.items():
        if value is not None:
            setattr(promo, field, value)
    _validate(promo)

    db.add(promo)
    db.commit()
    db.refresh(promo)
    return _to_out(promo)


@router.delete("/{promotion_id}")
def delete_promotion(promotion_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    promo = _get_promotion(db, promotion_id)
    db.delete(promo)
    db.commit()
    return {"message": "Promotion deleted successfully"}
