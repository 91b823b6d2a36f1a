"""
Order commit: the one place coupon uses, gift card balances and stock change.

Every intent is applied with a guarded UPDATE inside the caller's session
transaction. If any guard misses, the transaction is rolled back and
`CommitConflictError` is raised; the caller re-prices and tries again.
A repeated commit with the same idempotency key returns the first order.
"""
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront import models
from storefront.services.catalog.reader import SqlCatalogReader
from storefront.services.giftcards.ledger import SqlGiftCardRepository
from storefront.services.pricing.errors import CommitConflictError
from storefront.services.pricing.types import (
    CouponUsageIntent,
    Destination,
    GiftCardDebitIntent,
    PricingResult,
    StockDecrementIntent,
)
from storefront.services.promo.validator import SqlCouponRepository

logger = logging.getLogger(__name__)


@dataclass
class OrderDraft:
    idempotency_key: str
    user_id: Optional[int] = None
    destination: Optional[Destination] = None


def _gen_order_number() -> str:
    # include timestamp and random suffix to avoid collisions
    return "ORD-" + datetime.utcnow().strftime("%y%m%d%H%M%S") + f"{random.randint(0, 999):03d}"


def find_by_idempotency_key(db: Session, key: str) -> Optional[models.Order]:
    return db.query(models.Order).filter(models.Order.idempotency_key == key).first()


def _intent_order(intent) -> tuple:
    # fixed lock order across concurrent commits: coupons, gift cards, stock
    if isinstance(intent, CouponUsageIntent):
        return (0, intent.coupon_id)
    if isinstance(intent, GiftCardDebitIntent):
        return (1, intent.gift_card_id)
    return (2, intent.product_id)


def _apply_intents(db: Session, result: PricingResult, now: datetime) -> None:
    catalog = SqlCatalogReader(db)
    coupons = SqlCouponRepository(db)
    gift_cards = SqlGiftCardRepository(db)

    for intent in sorted(result.intents, key=_intent_order):
        if isinstance(intent, CouponUsageIntent):
            if not coupons.increment_usage(intent.coupon_id):
                raise CommitConflictError(
                    f"Coupon {intent.code} was used up or disabled meanwhile",
                    resource="coupon", code=intent.code,
                )
        elif isinstance(intent, GiftCardDebitIntent):
            if not gift_cards.decrement_balance(intent.gift_card_id, intent.amount, intent.expected_balance, now=now):
                raise CommitConflictError(
                    f"Gift card {intent.code} balance changed meanwhile",
                    resource="gift_card", code=intent.code,
                )
        elif isinstance(intent, StockDecrementIntent):
            if not catalog.decrement_stock(intent.product_id, intent.quantity):
                raise CommitConflictError(
                    f"Not enough stock left for product {intent.product_id}",
                    resource="stock", product_id=intent.product_id,
                )


def _build_order(result: PricingResult, draft: OrderDraft) -> models.Order:
    dest = draft.destination
    order = models.Order(
        number=_gen_order_number(),
        idempotency_key=draft.idempotency_key,
        user_id=draft.user_id,
        status="Pending",
        currency=result.currency,
        subtotal=result.subtotal,
        promotion_discount=result.promotion_discount,
        coupon_discount=result.coupon_discount,
        gift_card_applied=result.gift_card_applied,
        shipping_cost=result.shipping_cost,
        tax_amount=result.tax_amount,
        tax_included=result.tax_included,
        grand_total=result.grand_total,
        coupon_code=result.applied_coupon_code,
        coupon_id=result.applied_coupon_id,
        shipping_rate_id=result.shipping_rate.rate_id if result.shipping_rate else None,
        shipping_name=dest.name if dest else None,
        address_line1=dest.line1 if dest else None,
        city=dest.city if dest else None,
        region=dest.region if dest else None,
        postal_code=dest.postal_code if dest else None,
        country=dest.country.upper() if dest else None,
    )
    for line in result.lines:
        order.items.append(
            models.OrderItem(
                product_id=line.product_id,
                title_snapshot=line.title,
                qty=line.quantity,
                unit_price=line.unit_price,
                discount_amount=line.product_discount + line.promotion_discount,
                line_total=line.line_total,
                selected_options=line.selected_options or None,
            )
        )
    for alloc in result.gift_card_allocations:
        order.gift_card_redemptions.append(
            models.OrderGiftCardRedemption(
                gift_card_id=alloc.gift_card_id,
                code=alloc.code,
                amount=alloc.amount,
            )
        )
    return order


def commit(db: Session, result: PricingResult, draft: OrderDraft, now: Optional[datetime] = None) -> models.Order:
    """apply a priced cart's intents and create the order, all or nothing."""
    if not draft.idempotency_key:
        raise ValueError("idempotency_key is required")

    existing = find_by_idempotency_key(db, draft.idempotency_key)
    if existing:
        logger.info(f"Order {existing.number} already committed for key {draft.idempotency_key}")
        return existing

    now = now or datetime.utcnow()
    try:
        _apply_intents(db, result, now)
        order = _build_order(result, draft)
        db.add(order)
        db.flush()
        db.commit()
    except CommitConflictError as e:
        db.rollback()
        logger.warning(f"Commit conflict for key {draft.idempotency_key}: {e.detail}")
        raise
    except IntegrityError:
        db.rollback()
        # a concurrent request with the same key got there first
        existing = find_by_idempotency_key(db, draft.idempotency_key)
        if existing:
            logger.info(f"Order {existing.number} committed concurrently for key {draft.idempotency_key}")
            return existing
        logger.exception("Order commit failed on a constraint")
        raise CommitConflictError("Order could not be saved; re-price and retry", resource="order")

    db.refresh(order)
    logger.info(f"Committed order {order.number} total={order.grand_total} ({len(result.intents)} intents)")
    return order
