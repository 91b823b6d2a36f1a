from typing import List

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.core.security import get_current_user
from storefront.db.session import get_db
from storefront import models
from storefront.schemas.orders import OrderCreateRequest, OrderOut
from storefront.services.orders.commit import OrderDraft, commit, find_by_idempotency_key
from storefront.services.pricing.engine import build_pricing_engine
from storefront.services.pricing.types import PricingOptions

from .cart import to_cart_lines, to_destination

router = APIRouter(prefix="/orders", tags=["orders"])


def _check_replay(order: models.Order, user: models.User) -> models.Order:
    if order.user_id != user.id:
        raise HTTPException(status_code=409, detail="Idempotency key already used")
    return order


@router.post("", response_model=OrderOut)
def create_order(
    payload: OrderCreateRequest,
    idempotency_key: str = Header(..., alias="Idempotency-Key", min_length=1, max_length=128),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if not payload.items:
        raise HTTPException(status_code=400, detail="Items required")

    # a retried request must not be re-priced against already-spent stock or balances
    existing = find_by_idempotency_key(db, idempotency_key)
    if existing:
        return _check_replay(existing, user)

    destination = to_destination(payload.destination)
    engine = build_pricing_engine(db)
    result = engine.price(
        to_cart_lines(payload.items),
        PricingOptions(
            coupon_code=payload.coupon_code,
            gift_card_codes=payload.gift_card_codes,
            destination=destination,
        ),
    )
    if not result.meets_minimum_order:
        raise HTTPException(status_code=400, detail="Order total is below the store minimum")

    order = commit(db, result, OrderDraft(idempotency_key=idempotency_key, user_id=user.id, destination=destination))
    return _check_replay(order, user)


@router.get("/mine", response_model=List[OrderOut])
def my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    q = (
        db.query(models.Order)
        .filter(models.Order.user_id == user.id)
        .order_by(models.Order.created_at.desc())
    )
    return q.offset((page - 1) * page_size).limit(page_size).all()


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    order = db.get(models.Order, order_id)
    if not order or (order.user_id != user.id and user.role != "admin"):
        raise HTTPException(status_code=404, detail="Order not found")
    return order
