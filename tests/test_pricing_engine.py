"""Tests for the pricing engine, run against in-memory repositories."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from storefront.services.pricing.errors import (
    COUPON_EXHAUSTED,
    GIFT_CARD_NOT_FOUND,
    NoShippingRateError,
    StaleCartError,
)
from storefront.services.pricing.types import (
    CartLineItem,
    CouponUsageIntent,
    Destination,
    GiftCardDebitIntent,
    PricingOptions,
    PromotionSnapshot,
    StockDecrementIntent,
    StoreSettingsSnapshot,
)

from tests.fakes import (
    FakeCatalog,
    FakeCoupons,
    FakeGiftCards,
    FakePromotions,
    FakeShipping,
    coupon,
    gift_card,
    make_engine,
    product,
    rate,
    zone,
)

NOW = datetime(2026, 3, 10, 12, 0, 0)
US = Destination(country="US")
TAX_8 = StoreSettingsSnapshot(tax_enabled=True, tax_rate=Decimal("8"))


def site_wide(percent="10", promo_id=1):
    return PromotionSnapshot(
        id=promo_id,
        name="Sale",
        type="SITE_WIDE",
        discount_type="percentage",
        discount_value=Decimal(percent),
        starts_at=NOW - timedelta(days=1),
        ends_at=NOW + timedelta(days=1),
        is_active=True,
        created_at=NOW - timedelta(days=2),
        badge_text="SALE",
    )


def opts(**kw):
    kw.setdefault("now", NOW)
    return PricingOptions(**kw)


class TestWorkedExamples:
    def test_promotion_coupon_shipping_and_tax(self):
        """$100 cart, 10% promo, SAVE10, flat $5 shipping, 8% exclusive tax -> $91.40."""
        engine = make_engine(
            catalog=FakeCatalog(product(1, "100.00")),
            promotions=FakePromotions(site_wide("10")),
            coupons=FakeCoupons(coupon("SAVE10", value="10.00", min_order="50.00")),
            shipping=FakeShipping([zone(1)], [rate(1, price="5.00")]),
            settings=TAX_8,
        )
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts(coupon_code="SAVE10", destination=US))

        assert result.subtotal == Decimal("100.00")
        assert result.promotion_discount == Decimal("10.00")
        assert result.coupon_discount == Decimal("10.00")
        assert result.merchandise_total == Decimal("80.00")
        assert result.shipping_cost == Decimal("5.00")
        assert result.tax_amount == Decimal("6.40")
        assert result.grand_total == Decimal("91.40")
        assert result.applied_coupon_code == "SAVE10"
        assert result.rejections == []

    def test_gift_card_bigger_than_order(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "20.00")),
            gift_cards=FakeGiftCards(gift_card("TEST-CARD", "25.00")),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts(gift_card_codes=["TEST-CARD"]))

        assert result.gift_card_applied == Decimal("20.00")
        assert result.gift_card_allocations[0].balance_after == Decimal("5.00")
        assert result.grand_total == Decimal("0.00")

    def test_exhausted_coupon_is_reported_not_raised(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "70.00")),
            coupons=FakeCoupons(coupon("ONCE", max_uses=1, uses_count=1)),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts(coupon_code="once"))

        assert result.coupon_discount == Decimal("0.00")
        assert result.grand_total == Decimal("70.00")
        assert [(r.kind, r.code) for r in result.rejections] == [(COUPON_EXHAUSTED, "ONCE")]


class TestTotals:
    @pytest.mark.parametrize("prices,qtys", [
        (["10.00"], [1]),
        (["19.99", "5.01"], [3, 2]),
        (["0.33", "1234.56", "7.77"], [7, 1, 9]),
    ])
    def test_without_discounts_total_is_subtotal_plus_shipping_plus_tax(self, prices, qtys):
        catalog = FakeCatalog(*[product(i + 1, p) for i, p in enumerate(prices)])
        engine = make_engine(
            catalog=catalog,
            shipping=FakeShipping([zone(1)], [rate(1, price="4.99")]),
            settings=TAX_8,
        )
        cart = [CartLineItem(product_id=i + 1, quantity=q) for i, q in enumerate(qtys)]
        result = engine.price(cart, opts(destination=US))
        assert result.grand_total == result.subtotal + result.shipping_cost + result.tax_amount

    def test_per_product_discount_comes_before_promotions(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "50.00", discount="20")),
            promotions=FakePromotions(site_wide("10")),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=2)], opts())
        line = result.lines[0]
        assert line.product_discount == Decimal("20.00")
        assert line.promotion_discount == Decimal("8.00")
        assert line.line_total == Decimal("72.00")
        assert result.subtotal == Decimal("80.00")
        assert [d.source for d in result.line_discounts] == ["product", "promotion"]

    def test_coupon_minimum_checked_after_promotions(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "52.00")),
            promotions=FakePromotions(site_wide("10")),
            coupons=FakeCoupons(coupon("SAVE10", min_order="50.00")),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts(coupon_code="SAVE10"))
        assert result.coupon_discount == Decimal("0.00")
        assert result.rejections[0].kind == "CouponBelowMinimum"

    def test_free_shipping_threshold_uses_discounted_total(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "105.00")),
            promotions=FakePromotions(site_wide("10")),
            shipping=FakeShipping([zone(1)], [rate(1, price="5.00", min_order="100.00")]),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts(destination=US))
        assert result.merchandise_total == Decimal("94.50")
        assert result.shipping_cost == Decimal("5.00")

    def test_no_destination_means_no_shipping_quote(self):
        engine = make_engine(catalog=FakeCatalog(product(1, "10.00")))
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts())
        assert result.shipping_rate is None
        assert result.shipping_cost == Decimal("0.00")

    def test_unserved_destination_aborts(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "10.00")),
            shipping=FakeShipping([zone(1, ["US"])], [rate(1)]),
        )
        with pytest.raises(NoShippingRateError):
            engine.price([CartLineItem(product_id=1, quantity=1)], opts(destination=Destination(country="DE")))

    def test_inclusive_tax_not_added(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "120.00")),
            settings=StoreSettingsSnapshot(tax_enabled=True, tax_rate=Decimal("20"), tax_included=True),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts())
        assert result.tax_amount == Decimal("20.00")
        assert result.tax_included
        assert result.grand_total == Decimal("120.00")

    def test_minimum_order_flag(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "10.00")),
            settings=StoreSettingsSnapshot(min_order_amount=Decimal("25.00")),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=2)], opts())
        assert not result.meets_minimum_order


class TestGiftCards:
    def test_partial_redemption_leaves_balance_due(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "50.00")),
            gift_cards=FakeGiftCards(gift_card("GC30", "30.00")),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts(gift_card_codes=["GC30"]))
        assert result.gift_card_applied == Decimal("30.00")
        assert result.gift_card_allocations[0].balance_after == Decimal("0.00")
        assert result.grand_total == Decimal("20.00")

    def test_over_redemption_is_impossible(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "40.00")),
            gift_cards=FakeGiftCards(gift_card("A", "30.00", card_id=1), gift_card("B", "30.00", card_id=2)),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts(gift_card_codes=["A", "B"]))
        assert result.grand_total == Decimal("0.00")
        assert result.gift_card_applied == Decimal("40.00")
        assert [a.balance_after for a in result.gift_card_allocations] == [Decimal("0.00"), Decimal("20.00")]

    def test_gift_cards_can_pay_shipping_and_tax(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "20.00")),
            gift_cards=FakeGiftCards(gift_card("GC", "100.00")),
            shipping=FakeShipping([zone(1)], [rate(1, price="5.00")]),
            settings=TAX_8,
        )
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts(gift_card_codes=["GC"], destination=US))
        assert result.gift_card_applied == Decimal("26.60")
        assert result.grand_total == Decimal("0.00")

    def test_gift_cards_limited_to_merchandise_when_store_says_so(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "20.00")),
            gift_cards=FakeGiftCards(gift_card("GC", "100.00")),
            shipping=FakeShipping([zone(1)], [rate(1, price="5.00")]),
            settings=StoreSettingsSnapshot(gift_cards_cover_shipping=False),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts(gift_card_codes=["GC"], destination=US))
        assert result.gift_card_applied == Decimal("20.00")
        assert result.grand_total == Decimal("5.00")

    def test_unknown_card_rejected_alongside_good_one(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "20.00")),
            gift_cards=FakeGiftCards(gift_card("GOOD", "5.00")),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=1)], opts(gift_card_codes=["BAD", "GOOD"]))
        assert result.applied_gift_card_codes == ["GOOD"]
        assert result.rejections[0].kind == GIFT_CARD_NOT_FOUND
        assert result.grand_total == Decimal("15.00")


class TestStaleCart:
    def test_missing_product(self):
        engine = make_engine(catalog=FakeCatalog())
        with pytest.raises(StaleCartError) as exc:
            engine.price([CartLineItem(product_id=9, quantity=1)], opts())
        assert exc.value.to_dict() == {
            "kind": "StaleCartError",
            "detail": "Product 9 no longer exists",
            "product_id": 9,
            "reason": "not_found",
        }

    def test_inactive_product(self):
        engine = make_engine(catalog=FakeCatalog(product(1, is_active=False)))
        with pytest.raises(StaleCartError) as exc:
            engine.price([CartLineItem(product_id=1, quantity=1)], opts())
        assert exc.value.context["reason"] == "inactive"

    def test_price_changed_since_cart_was_built(self):
        engine = make_engine(catalog=FakeCatalog(product(1, "12.00")))
        with pytest.raises(StaleCartError) as exc:
            engine.price([CartLineItem(product_id=1, quantity=1, unit_price=Decimal("10.00"))], opts())
        assert exc.value.context["reason"] == "price_changed"

    def test_stock_counted_across_lines_of_same_product(self):
        engine = make_engine(catalog=FakeCatalog(product(1, stock=3)))
        cart = [
            CartLineItem(product_id=1, quantity=2, selected_options={"size": "M"}),
            CartLineItem(product_id=1, quantity=2, selected_options={"size": "L"}),
        ]
        with pytest.raises(StaleCartError) as exc:
            engine.price(cart, opts())
        assert exc.value.context["available"] == 3

    def test_stock_ignored_when_not_tracked(self):
        engine = make_engine(
            catalog=FakeCatalog(product(1, "10.00", stock=0)),
            settings=StoreSettingsSnapshot(track_inventory=False),
        )
        result = engine.price([CartLineItem(product_id=1, quantity=4)], opts())
        assert result.grand_total == Decimal("40.00")
        assert not [i for i in result.intents if isinstance(i, StockDecrementIntent)]

    def test_non_positive_quantity(self):
        engine = make_engine(catalog=FakeCatalog(product(1)))
        with pytest.raises(ValueError):
            engine.price([CartLineItem(product_id=1, quantity=0)], opts())


class TestPurity:
    def _engine(self, coupons, gift_cards):
        return make_engine(
            catalog=FakeCatalog(product(1, "80.00"), product(2, "15.00")),
            promotions=FakePromotions(site_wide("10")),
            coupons=coupons,
            gift_cards=gift_cards,
            shipping=FakeShipping([zone(1)], [rate(1, price="5.00")]),
            settings=TAX_8,
        )

    def test_repeat_pricing_is_identical_and_mutates_nothing(self):
        coupons = FakeCoupons(coupon("SAVE10", max_uses=10, uses_count=3))
        cards = FakeGiftCards(gift_card("GC", "20.00"))
        engine = self._engine(coupons, cards)
        cart = [CartLineItem(product_id=1, quantity=1), CartLineItem(product_id=2, quantity=2)]
        options = opts(coupon_code="SAVE10", gift_card_codes=["GC"], destination=US)

        first = engine.price(cart, options)
        second = engine.price(cart, options)

        assert first.to_dict() == second.to_dict()
        assert coupons.increments == []
        assert coupons.find_by_code("SAVE10").uses_count == 3
        assert cards.find_by_code("GC").balance == Decimal("20.00")

    def test_intents_describe_every_pending_change(self):
        coupons = FakeCoupons(coupon("SAVE10", id=4))
        cards = FakeGiftCards(gift_card("GC", "20.00", card_id=7))
        engine = self._engine(coupons, cards)
        cart = [CartLineItem(product_id=2, quantity=2), CartLineItem(product_id=1, quantity=1)]
        result = engine.price(cart, opts(coupon_code="SAVE10", gift_card_codes=["GC"], destination=US))

        assert result.intents == [
            CouponUsageIntent(coupon_id=4, code="SAVE10"),
            GiftCardDebitIntent(gift_card_id=7, code="GC", amount=Decimal("20.00"), expected_balance=Decimal("20.00")),
            StockDecrementIntent(product_id=1, quantity=1),
            StockDecrementIntent(product_id=2, quantity=2),
        ]
