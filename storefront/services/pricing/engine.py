"""
Order pricing.

`PricingEngine.price()` turns a cart snapshot into a fully itemised total.
It is read-only: whatever has to change in the store (coupon usage, gift
card balances, stock) comes back as intents for the order commit to apply.

Order of operations, fixed so repeated calls give identical totals:

1. catalog prices and per-product discounts
2. subtotal
3. best automatic promotion per line
4. coupon, against the post-promotion subtotal
5. shipping, against the post-discount merchandise total
6. tax
7. gift cards, against what is left (shipping and tax included when the
   store lets gift cards pay for them)
"""
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from storefront.services.catalog.reader import CatalogReader, SqlCatalogReader
from storefront.services.giftcards.ledger import GiftCardRepository, SqlGiftCardRepository, allocate_gift_cards
from storefront.services.promo.resolver import PromotionRepository, SqlPromotionRepository, resolve_promotions
from storefront.services.promo.validator import CouponRepository, SqlCouponRepository, validate_coupon
from storefront.services.settings.store import SqlStoreSettingsRepository, StoreSettingsRepository
from storefront.services.shipping.rates import ShippingRepository, SqlShippingRepository, select_rate
from storefront.services.tax.calculator import calculate_tax

from .errors import StaleCartError
from .money import ZERO, money_sum, percent_of, round_money
from .types import (
    CartLineItem,
    CatalogEntry,
    CouponUsageIntent,
    GiftCardDebitIntent,
    Intent,
    LineDiscount,
    PricedLine,
    PricingOptions,
    PricingResult,
    Rejection,
    ShippingQuote,
    StockDecrementIntent,
    StoreSettingsSnapshot,
    normalize_code,
)

logger = logging.getLogger(__name__)


class PricingEngine:
    def __init__(
        self,
        catalog: CatalogReader,
        promotions: PromotionRepository,
        coupons: CouponRepository,
        gift_cards: GiftCardRepository,
        shipping: ShippingRepository,
        store_settings: StoreSettingsRepository,
    ):
        self.catalog = catalog
        self.promotions = promotions
        self.coupons = coupons
        self.gift_cards = gift_cards
        self.shipping = shipping
        self.store_settings = store_settings

    def price(self, cart: Sequence[CartLineItem], options: Optional[PricingOptions] = None) -> PricingResult:
        """price a cart. Raises StaleCartError / NoShippingRateError; never writes."""
        options = options or PricingOptions()
        now = options.now or datetime.utcnow()
        store = self.store_settings.get()
        rejections: List[Rejection] = []

        # 1-2. catalog prices, per-product discounts, subtotal
        resolved = self._resolve_lines(cart, store)
        lines = [line for line, _ in resolved]
        subtotal = money_sum(line.gross - line.product_discount for line in lines)

        # 3. one promotion per line, best value wins
        line_discounts: List[LineDiscount] = [
            LineDiscount(product_id=line.product_id, source="product", amount=line.product_discount,
                         label="Product discount")
            for line, _ in resolved
            if line.product_discount > ZERO
        ]
        promotions = self.promotions.list_active(now) if lines else []
        applied = resolve_promotions(
            promotions,
            [(entry, line.gross - line.product_discount, line.quantity) for line, entry in resolved],
            now,
        )
        for line, promo in zip(lines, applied):
            if promo is None:
                continue
            line.promotion_discount = promo.amount
            line.promotion_id = promo.promotion_id
            line.line_total = line.gross - line.product_discount - promo.amount
            line_discounts.append(
                LineDiscount(product_id=line.product_id, source="promotion", amount=promo.amount,
                             promotion_id=promo.promotion_id, label=promo.badge_text or promo.name)
            )
        promotion_discount = money_sum(line.promotion_discount for line in lines)
        post_promotion = subtotal - promotion_discount

        # 4. coupon
        coupon_discount = ZERO
        applied_coupon = None
        if options.coupon_code and options.coupon_code.strip():
            code = normalize_code(options.coupon_code)
            res = validate_coupon(self.coupons.find_by_code(code), post_promotion, now)
            if res.valid:
                coupon_discount = res.discount
                applied_coupon = res.coupon
            else:
                logger.info(f"Coupon {code} rejected: {res.reason}")
                rejections.append(Rejection(kind=res.reason, code=code))
        merchandise_total = max(ZERO, round_money(post_promotion - coupon_discount))

        # 5. shipping
        shipping_quote: Optional[ShippingQuote] = None
        shipping_cost = ZERO
        if options.destination is not None and lines:
            zones, rates = self.shipping.list_zones_and_rates()
            weight = sum((line.weight * line.quantity for line in lines), ZERO)
            shipping_quote = select_rate(zones, rates, options.destination, merchandise_total, weight)
            shipping_cost = shipping_quote.cost

        # 6. tax
        tax = calculate_tax(store, merchandise_total, shipping_cost)
        total_before_gift_cards = round_money(merchandise_total + shipping_cost + tax.added_to_total)

        # 7. gift cards
        gift_card_base = total_before_gift_cards if store.gift_cards_cover_shipping else merchandise_total
        allocations, gift_card_rejections = allocate_gift_cards(
            options.gift_card_codes or [], gift_card_base, self.gift_cards, now
        )
        rejections.extend(gift_card_rejections)
        gift_card_applied = money_sum(a.amount for a in allocations)
        grand_total = max(ZERO, round_money(total_before_gift_cards - gift_card_applied))

        intents = self._build_intents(lines, store, applied_coupon, allocations)

        result = PricingResult(
            currency=store.currency,
            lines=lines,
            subtotal=subtotal,
            line_discounts=line_discounts,
            promotion_discount=promotion_discount,
            coupon_discount=coupon_discount,
            merchandise_total=merchandise_total,
            gift_card_applied=gift_card_applied,
            shipping_cost=shipping_cost,
            tax_amount=tax.amount,
            tax_included=tax.included,
            grand_total=grand_total,
            applied_coupon_code=applied_coupon.code if applied_coupon else None,
            applied_coupon_id=applied_coupon.id if applied_coupon else None,
            applied_gift_card_codes=[a.code for a in allocations],
            gift_card_allocations=allocations,
            shipping_rate=shipping_quote,
            rejections=rejections,
            intents=intents,
            meets_minimum_order=(store.min_order_amount is None or merchandise_total >= store.min_order_amount),
        )
        logger.debug(
            f"Priced {len(lines)} lines: subtotal={subtotal} promo={promotion_discount} "
            f"coupon={coupon_discount} shipping={shipping_cost} tax={tax.amount} "
            f"gift_cards={gift_card_applied} total={grand_total}"
        )
        return result

    def _resolve_lines(
        self, cart: Sequence[CartLineItem], store: StoreSettingsSnapshot
    ) -> List[Tuple[PricedLine, CatalogEntry]]:
        entries: Dict[int, CatalogEntry] = {}
        wanted: Dict[int, int] = OrderedDict()
        resolved: List[Tuple[PricedLine, CatalogEntry]] = []

        for item in cart:
            if item.quantity <= 0:
                raise ValueError("Quantity must be positive")

            entry = entries.get(item.product_id)
            if entry is None:
                entry = self.catalog.get_price_and_stock(item.product_id)
                if entry is None:
                    raise StaleCartError(
                        f"Product {item.product_id} no longer exists",
                        product_id=item.product_id, reason="not_found",
                    )
                entries[item.product_id] = entry
            if not entry.is_active:
                raise StaleCartError(
                    f"Product {item.product_id} is no longer available",
                    product_id=item.product_id, reason="inactive",
                )
            if item.unit_price is not None and round_money(item.unit_price) != round_money(entry.price):
                raise StaleCartError(
                    f"Price of product {item.product_id} changed",
                    product_id=item.product_id, reason="price_changed",
                    expected=float(item.unit_price), current=float(entry.price),
                )
            wanted[item.product_id] = wanted.get(item.product_id, 0) + item.quantity

            gross = round_money(entry.price * item.quantity)
            product_discount = min(max(percent_of(gross, entry.discount), ZERO), gross)
            line = PricedLine(
                product_id=entry.product_id,
                title=entry.title,
                quantity=item.quantity,
                unit_price=round_money(entry.price),
                gross=gross,
                product_discount=product_discount,
                promotion_discount=ZERO,
                line_total=gross - product_discount,
                weight=entry.weight,
                selected_options=dict(item.selected_options or {}),
            )
            resolved.append((line, entry))

        if store.track_inventory:
            # the same product may sit on several lines with different options
            for product_id, quantity in wanted.items():
                entry = entries[product_id]
                if entry.stock < quantity:
                    raise StaleCartError(
                        f"Only {entry.stock} of product {product_id} in stock",
                        product_id=product_id, reason="insufficient_stock", available=entry.stock,
                    )
        return resolved

    @staticmethod
    def _build_intents(lines, store, coupon, allocations) -> List[Intent]:
        intents: List[Intent] = []
        if coupon is not None:
            intents.append(CouponUsageIntent(coupon_id=coupon.id, code=coupon.code))
        for a in allocations:
            intents.append(
                GiftCardDebitIntent(gift_card_id=a.gift_card_id, code=a.code, amount=a.amount,
                                    expected_balance=a.balance_before)
            )
        if store.track_inventory:
            totals: Dict[int, int] = {}
            for line in lines:
                totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
            for product_id in sorted(totals):
                intents.append(StockDecrementIntent(product_id=product_id, quantity=totals[product_id]))
        return intents


def build_pricing_engine(db: Session) -> PricingEngine:
    """engine wired to the SQL repositories of one session."""
    return PricingEngine(
        catalog=SqlCatalogReader(db),
        promotions=SqlPromotionRepository(db),
        coupons=SqlCouponRepository(db),
        gift_cards=SqlGiftCardRepository(db),
        shipping=SqlShippingRepository(db),
        store_settings=SqlStoreSettingsRepository(db),
    )
