from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.core.security import require_admin
from storefront.db.session import get_db
from storefront import models
from storefront.schemas.gift_cards import GiftCardCreate, GiftCardOut, GiftCardStatusUpdate
from storefront.services.giftcards.codes import CodeGenerationError, issue_gift_card
from storefront.services.pricing.money import ZERO
from storefront.services.pricing.types import ACTIVE, GIFT_CARD_STATUSES, REDEEMED

router = APIRouter(prefix="/admin/gift-cards", tags=["admin"])


def _get_card(db: Session, card_id: int) -> models.GiftCard:
    card = db.get(models.GiftCard, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Gift card not found")
    return card


@router.get("", response_model=List[GiftCardOut])
def list_gift_cards(status: Optional[str] = None, db: Session = Depends(get_db), admin=Depends(require_admin)):
    q = db.query(models.GiftCard)
    if status:
        q = q.filter(models.GiftCard.status == status.upper())
    return q.order_by(models.GiftCard.created_at.desc(), models.GiftCard.id.desc()).all()


@router.post("", response_model=GiftCardOut)
def create_gift_card(payload: GiftCardCreate, db: Session = Depends(get_db), admin=Depends(require_admin)):
    try:
        return issue_gift_card(
            db,
            Decimal(str(payload.initial_amount)),
            expires_at=payload.expires_at,
            recipient_email=payload.recipient_email,
            sender_name=payload.sender_name,
            message=payload.message,
        )
    except CodeGenerationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


@router.get("/{card_id}", response_model=GiftCardOut)
def get_gift_card(card_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    return _get_card(db, card_id)


@router.patch("/{card_id}/status", response_model=GiftCardOut)
def update_gift_card_status(
    card_id: int,
    payload: GiftCardStatusUpdate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    status = payload.status.upper()
    if status not in GIFT_CARD_STATUSES:
        raise HTTPException(status_code=400, detail=f"Status must be one of: {', '.join(GIFT_CARD_STATUSES)}")
    card = _get_card(db, card_id)
    # REDEEMED means the balance is used up; ACTIVE needs money left and an open expiry
    if status == REDEEMED and card.balance != ZERO:
        raise HTTPException(status_code=400, detail="Only a card with zero balance can be marked REDEEMED")
    if status == ACTIVE:
        if card.balance <= ZERO:
            raise HTTPException(status_code=400, detail="A card with zero balance cannot be reactivated")
        if card.expires_at and datetime.utcnow() > card.expires_at:
            raise HTTPException(status_code=400, detail="An expired card cannot be reactivated")
    card.status = status
    db.add(card)
    db.commit()
    db.refresh(card)
    return card


@router.delete("/{card_id}")
def delete_gift_card(card_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    card = _get_card(db, card_id)
    if card.redemptions:
        raise HTTPException(status_code=400, detail="Cannot delete a gift card that has been redeemed. Cancel it instead.")
    db.delete(card)
    db.commit()
    return {"message": "Gift card deleted successfully"}
