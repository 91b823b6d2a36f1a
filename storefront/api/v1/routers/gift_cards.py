from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.db.session import get_db
from storefront.schemas.gift_cards import GiftCardCheckRequest, GiftCardCheckResponse
from storefront.services.giftcards.ledger import SqlGiftCardRepository, check_gift_card, effective_status
from storefront.services.pricing.types import normalize_code

router = APIRouter(prefix="/gift-cards", tags=["gift-cards"])


@router.post("/check", response_model=GiftCardCheckResponse)
def check_balance(payload: GiftCardCheckRequest, db: Session = Depends(get_db)):
    """look up a card's usable balance without touching it."""
    code = normalize_code(payload.code)
    now = datetime.utcnow()
    card = SqlGiftCardRepository(db).find_by_code(code)
    reason = check_gift_card(card, now)
    if card is None:
        return GiftCardCheckResponse(code=code, valid=False, reason=reason)
    return GiftCardCheckResponse(
        code=card.code,
        valid=reason is None,
        status=effective_status(card, now),
        balance=float(card.balance),
        expires_at=card.expires_at,
        reason=reason,
    )
