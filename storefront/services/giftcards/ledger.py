"""
Gift card checks and allocation against an order total.

Allocation only plans the draw; balances move when an order commits
(see `storefront.services.orders.commit`).
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import case, func, or_, update
from sqlalchemy.orm import Session

from storefront import models
from storefront.services.pricing.errors import (
    DUPLICATE_GIFT_CARD,
    GIFT_CARD_EXHAUSTED,
    GIFT_CARD_EXPIRED,
    GIFT_CARD_INACTIVE,
    GIFT_CARD_NOT_FOUND,
)
from storefront.services.pricing.money import ZERO, to_decimal
from storefront.services.pricing.types import (
    ACTIVE,
    EXPIRED,
    REDEEMED,
    GiftCardAllocation,
    GiftCardSnapshot,
    Rejection,
    normalize_code,
)

logger = logging.getLogger(__name__)


class GiftCardRepository:
    """base interface for gift card lookups and balance changes."""

    def find_by_code(self, code: str) -> Optional[GiftCardSnapshot]:  # pragma: no cover
        raise NotImplementedError

    def decrement_balance(self, gift_card_id: int, amount: Decimal, expected_balance: Decimal,
                          now: Optional[datetime] = None) -> bool:  # pragma: no cover
        raise NotImplementedError


class SqlGiftCardRepository(GiftCardRepository):
    def __init__(self, db: Session):
        self.db = db

    def find_by_code(self, code: str) -> Optional[GiftCardSnapshot]:
        card = (
            self.db.query(models.GiftCard)
            .filter(func.upper(models.GiftCard.code) == normalize_code(code))
            .first()
        )
        if not card:
            return None
        return to_snapshot(card)

    def decrement_balance(self, gift_card_id: int, amount: Decimal, expected_balance: Decimal,
                          now: Optional[datetime] = None) -> bool:
        """compare-and-set draw: only succeeds if the balance is still what pricing saw."""
        now = now or datetime.utcnow()
        remaining = models.GiftCard.balance - amount
        res = self.db.execute(
            update(models.GiftCard)
            .where(
                models.GiftCard.id == gift_card_id,
                models.GiftCard.status == ACTIVE,
                models.GiftCard.balance == expected_balance,
                models.GiftCard.balance >= amount,
                or_(models.GiftCard.expires_at.is_(None), models.GiftCard.expires_at >= now),
            )
            .values(
                balance=remaining,
                status=case((remaining <= 0, REDEEMED), else_=models.GiftCard.status),
            )
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1


def to_snapshot(card: models.GiftCard) -> GiftCardSnapshot:
    return GiftCardSnapshot(
        id=card.id,
        code=card.code,
        initial_amount=to_decimal(card.initial_amount),
        balance=to_decimal(card.balance),
        status=card.status,
        expires_at=card.expires_at,
    )


def effective_status(card: GiftCardSnapshot, now: datetime) -> str:
    """stored status, except a past expiry date always reads as EXPIRED."""
    if card.expires_at and now > card.expires_at:
        return EXPIRED
    return card.status


def check_gift_card(card: Optional[GiftCardSnapshot], now: datetime) -> Optional[str]:
    """return the rejection kind for this card, or None if it can be drawn on.

    Checked in order: existence, status, expiry, balance.
    """
    if card is None:
        return GIFT_CARD_NOT_FOUND
    if card.status != ACTIVE:
        if card.status == REDEEMED:
            return GIFT_CARD_EXHAUSTED
        if card.status == EXPIRED:
            return GIFT_CARD_EXPIRED
        return GIFT_CARD_INACTIVE
    if card.expires_at and now > card.expires_at:
        return GIFT_CARD_EXPIRED
    if card.balance <= ZERO:
        return GIFT_CARD_EXHAUSTED
    return None


def allocate_gift_cards(
    codes: Sequence[str],
    amount_due: Decimal,
    repo: GiftCardRepository,
    now: datetime,
) -> Tuple[List[GiftCardAllocation], List[Rejection]]:
    """draw on cards in the order given until `amount_due` is covered.

    Bad codes are rejected one by one and the remaining cards still apply.
    A card that is not needed once the total is covered keeps its balance.
    """
    allocations: List[GiftCardAllocation] = []
    rejections: List[Rejection] = []
    seen = set()
    remaining = max(amount_due, ZERO)

    for raw in codes:
        code = normalize_code(raw)
        if code in seen:
            rejections.append(Rejection(kind=DUPLICATE_GIFT_CARD, code=code, detail="Gift card code supplied more than once"))
            continue
        seen.add(code)

        card = repo.find_by_code(code)
        reason = check_gift_card(card, now)
        if reason:
            logger.info(f"Gift card {code} rejected: {reason}")
            rejections.append(Rejection(kind=reason, code=code))
            continue

        if remaining <= ZERO:
            continue
        amount = min(card.balance, remaining)
        allocations.append(
            GiftCardAllocation(
                gift_card_id=card.id,
                code=card.code,
                amount=amount,
                balance_before=card.balance,
                balance_after=card.balance - amount,
            )
        )
        remaining -= amount

    return allocations, rejections
