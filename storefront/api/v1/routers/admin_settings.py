import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.core.security import require_admin
from storefront.db.session import get_db
from storefront.schemas.admin import StoreSettingsOut, StoreSettingsUpdate
from storefront.services.settings.store import get_or_create_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/settings", tags=["admin"])


@router.get("", response_model=StoreSettingsOut)
def get_settings(db: Session = Depends(get_db), admin=Depends(require_admin)):
    return get_or_create_settings(db)


@router.put("", response_model=StoreSettingsOut)
def update_settings(payload: StoreSettingsUpdate, db: Session = Depends(get_db), admin=Depends(require_admin)):
    row = get_or_create_settings(db)
    data = payload.dict(exclude_unset=True)
    if data.get("currency") is not None:
        data["currency"] = data["currency"].strip().upper()
        if len(data["currency"]) != 3:
            raise HTTPException(status_code=400, detail="Currency must be a 3-letter ISO code")
    for field, value in data.items():
        setattr(row, field, value)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info(f"Store settings updated by admin {admin.id}: {sorted(data)}")
    return row
