from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.db.session import get_db
from storefront.schemas.promo_cart import PromoValidateRequest, PromoValidateResponse
from storefront.services.promo.validator import SqlCouponRepository, calculate_discount

router = APIRouter(prefix="/promo", tags=["promo"])


@router.post("/validate", response_model=PromoValidateResponse)
def validate_promo(payload: PromoValidateRequest, db: Session = Depends(get_db)):
    # preview only: usage is counted when an order commits
    res = calculate_discount(SqlCouponRepository(db), payload.code, Decimal(str(payload.subtotal)))
    return PromoValidateResponse(**res.dict())
