from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from storefront.core.security import require_admin
from storefront.db.session import get_db
from storefront import models
from storefront.schemas.admin import (
    ShippingRateCreate,
    ShippingRateOut,
    ShippingRateUpdate,
    ShippingZoneCreate,
    ShippingZoneOut,
    ShippingZoneUpdate,
)
from storefront.services.pricing.types import RATE_TYPES

router = APIRouter(prefix="/admin/shipping", tags=["admin"])


def _countries(codes: List[str]) -> List[str]:
    cleaned = []
    for c in codes:
        c = c.strip().upper()
        if len(c) != 2:
            raise HTTPException(status_code=400, detail=f"Invalid country code: {c!r}")
        if c not in cleaned:
            cleaned.append(c)
    return cleaned


def _check_rate(rate: models.ShippingRate) -> None:
    if rate.type not in RATE_TYPES:
        raise HTTPException(status_code=400, detail=f"Type must be one of: {', '.join(RATE_TYPES)}")
    if rate.min_days is not None and rate.max_days is not None and rate.min_days > rate.max_days:
        raise HTTPException(status_code=400, detail="min_days cannot exceed max_days")


def _get_zone(db: Session, zone_id: int) -> models.ShippingZone:
    zone = db.get(models.ShippingZone, zone_id)
    if not zone:
        raise HTTPException(status_code=404, detail="Shipping zone not found")
    return zone


def _get_rate(db: Session, rate_id: int) -> models.ShippingRate:
    rate = db.get(models.ShippingRate, rate_id)
    if not rate:
        raise HTTPException(status_code=404, detail="Shipping rate not found")
    return rate


# zones

@router.get("/zones", response_model=List[ShippingZoneOut])
def list_zones(db: Session = Depends(get_db), admin=Depends(require_admin)):
    return (
        db.query(models.ShippingZone)
        .options(selectinload(models.ShippingZone.rates))
        .order_by(models.ShippingZone.id.asc())
        .all()
    )


@router.post("/zones", response_model=ShippingZoneOut)
def create_zone(payload: ShippingZoneCreate, db: Session = Depends(get_db), admin=Depends(require_admin)):
    zone = models.ShippingZone(name=payload.name, countries=_countries(payload.countries), is_active=payload.is_active)
    db.add(zone)
    db.commit()
    db.refresh(zone)
    return zone


@router.put("/zones/{zone_id}", response_model=ShippingZoneOut)
def update_zone(zone_id: int, payload: ShippingZoneUpdate, db: Session = Depends(get_db), admin=Depends(require_admin)):
    zone = _get_zone(db, zone_id)
    if payload.name is not None:
        zone.name = payload.name
    if payload.countries is not None:
        zone.countries = _countries(payload.countries)
    if payload.is_active is not None:
        zone.is_active = payload.is_active
    db.add(zone)
    db.commit()
    db.refresh(zone)
    return zone


@router.delete("/zones/{zone_id}")
def delete_zone(zone_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    zone = _get_zone(db, zone_id)
    db.delete(zone)  # rates go with it
    db.commit()
    return {"message": "Shipping zone deleted successfully"}


# rates

@router.get("/rates", response_model=List[ShippingRateOut])
def list_rates(db: Session = Depends(get_db), admin=Depends(require_admin)):
    return db.query(models.ShippingRate).order_by(models.ShippingRate.id.asc()).all()


@router.post("/zones/{zone_id}/rates", response_model=ShippingRateOut)
def create_rate(zone_id: int, payload: ShippingRateCreate, db: Session = Depends(get_db), admin=Depends(require_admin)):
    zone = _get_zone(db, zone_id)
    rate = models.ShippingRate(zone_id=zone.id, **payload.dict())
    _check_rate(rate)
    db.add(rate)
    db.commit()
    db.refresh(rate)
    return rate


@router.put("/rates/{rate_id}", response_model=ShippingRateOut)
def update_rate(rate_id: int, payload: ShippingRateUpdate, db: Session = Depends(get_db), admin=Depends(require_admin)):
    rate = _get_rate(db, rate_id)
    for field, value in payload.dict(exclude_unset=True).items():
        setattr(rate, field, value)
    _check_rate(rate)
    db.add(rate)
    db.commit()
    db.refresh(rate)
    return rate


@router.delete("/rates/{rate_id}")
def delete_rate(rate_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    rate = _get_rate(db, rate_id)
    db.delete(rate)
    db.commit()
    return {"message": "Shipping rate deleted successfully"}
