from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.db.session import get_db
from storefront.schemas.promo_cart import CartItem, DestinationIn, PriceRequest, PriceResponse
from storefront.services.pricing.engine import build_pricing_engine
from storefront.services.pricing.types import CartLineItem, Destination, PricingOptions

router = APIRouter(prefix="/cart", tags=["cart"])


def to_cart_lines(items: list[CartItem]) -> list[CartLineItem]:
    return [
        CartLineItem(
            product_id=it.product_id,
            quantity=it.quantity,
            unit_price=None if it.unit_price is None else Decimal(str(it.unit_price)),
            selected_options=dict(it.selected_options or {}),
        )
        for it in items
    ]


def to_destination(dest: DestinationIn | None) -> Destination | None:
    if dest is None:
        return None
    return Destination(
        country=dest.country.upper(),
        region=dest.region,
        city=dest.city,
        postal_code=dest.postal_code,
        line1=dest.line1,
        name=dest.name,
    )


@router.post("/price", response_model=PriceResponse)
def price_cart(payload: PriceRequest, db: Session = Depends(get_db)):
    """price a cart snapshot; nothing is reserved or written."""
    if not payload.items:
        raise HTTPException(status_code=400, detail="Items required")

    engine = build_pricing_engine(db)
    options = PricingOptions(
        coupon_code=payload.coupon_code,
        gift_card_codes=payload.gift_card_codes,
        destination=to_destination(payload.destination),
    )
    result = engine.price(to_cart_lines(payload.items), options)
    return result.to_dict()
