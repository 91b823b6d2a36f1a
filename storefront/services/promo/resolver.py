"""
Automatic (code-less) promotion resolution.

Each line gets at most one promotion: the one worth the most for that line.
Exact ties go to the earliest-created promotion so the outcome never depends
on the order the repository happened to return rows in.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session, selectinload

from storefront import models
from storefront.services.pricing.money import ZERO, percent_of, round_money, to_decimal
from storefront.services.pricing.types import (
    CatalogEntry,
    PERCENTAGE,
    PromotionSnapshot,
    SITE_WIDE,
)


@dataclass
class AppliedPromotion:
    promotion_id: int
    name: str
    amount: Decimal
    badge_text: Optional[str] = None


class PromotionRepository:
    """base interface for reading store promotions."""

    def list_active(self, now: datetime) -> List[PromotionSnapshot]:  # pragma: no cover
        raise NotImplementedError


class SqlPromotionRepository(PromotionRepository):
    def __init__(self, db: Session):
        self.db = db

    def list_active(self, now: datetime) -> List[PromotionSnapshot]:
        rows = (
            self.db.query(models.Promotion)
            .options(
                selectinload(models.Promotion.products),
                selectinload(models.Promotion.categories),
                selectinload(models.Promotion.brands),
            )
            .filter(
                models.Promotion.is_active == True,  # noqa: E712
                models.Promotion.starts_at <= now,
                models.Promotion.ends_at > now,
            )
            .order_by(models.Promotion.created_at.asc(), models.Promotion.id.asc())
            .all()
        )
        return [to_snapshot(p) for p in rows]


def to_snapshot(promo: models.Promotion) -> PromotionSnapshot:
    return PromotionSnapshot(
        id=promo.id,
        name=promo.name,
        type=promo.type,
        discount_type=promo.discount_type,
        discount_value=to_decimal(promo.discount_value),
        starts_at=promo.starts_at,
        ends_at=promo.ends_at,
        is_active=bool(promo.is_active),
        created_at=promo.created_at,
        product_ids=frozenset(p.id for p in promo.products),
        category_ids=frozenset(c.id for c in promo.categories),
        brand_ids=frozenset(b.id for b in promo.brands),
        badge_text=promo.badge_text,
    )


def is_promotion_active(promo: PromotionSnapshot, now: datetime) -> bool:
    # window is half-open: [starts_at, ends_at)
    return promo.is_active and promo.starts_at <= now < promo.ends_at


def promotion_applies(promo: PromotionSnapshot, entry: CatalogEntry) -> bool:
    if promo.type == SITE_WIDE:
        return True
    if entry.product_id in promo.product_ids:
        return True
    if entry.category_id is not None and entry.category_id in promo.category_ids:
        return True
    if entry.brand_id is not None and entry.brand_id in promo.brand_ids:
        return True
    return False


def promotion_value(promo: PromotionSnapshot, line_amount: Decimal, quantity: int) -> Decimal:
    """discount this promotion would give a line, never more than the line itself."""
    if line_amount <= ZERO:
        return ZERO
    if promo.discount_type == PERCENTAGE:
        amount = percent_of(line_amount, promo.discount_value)
    else:
        # fixed promotions take an amount off every unit
        amount = round_money(promo.discount_value * quantity)
    return min(max(amount, ZERO), line_amount)


def _creation_order(promotions: Iterable[PromotionSnapshot]) -> List[PromotionSnapshot]:
    return sorted(promotions, key=lambda p: (p.created_at, p.id))


def best_promotion(
    promotions: Sequence[PromotionSnapshot],
    entry: CatalogEntry,
    line_amount: Decimal,
    quantity: int,
    now: datetime,
) -> Optional[AppliedPromotion]:
    best: Optional[AppliedPromotion] = None
    for promo in _creation_order(promotions):
        if not is_promotion_active(promo, now) or not promotion_applies(promo, entry):
            continue
        amount = promotion_value(promo, line_amount, quantity)
        if amount <= ZERO:
            continue
        # strictly greater: an equal later promotion never displaces an earlier one
        if best is None or amount > best.amount:
            best = AppliedPromotion(
                promotion_id=promo.id,
                name=promo.name,
                amount=amount,
                badge_text=promo.badge_text,
            )
    return best


def resolve_promotions(
    promotions: Sequence[PromotionSnapshot],
    lines: Sequence[tuple],
    now: datetime,
) -> List[Optional[AppliedPromotion]]:
    """pick the best promotion for each `(entry, line_amount, quantity)` line.

    Lines are evaluated independently, so different lines of one cart may end
    up with different promotions.
    """
    ordered = _creation_order(promotions)
    return [best_promotion(ordered, entry, amount, qty, now) for entry, amount, qty in lines]
