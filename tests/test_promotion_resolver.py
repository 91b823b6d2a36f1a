"""Tests for automatic promotion selection."""

from datetime import datetime, timedelta
from decimal import Decimal

from storefront.services.promo.resolver import (
    best_promotion,
    is_promotion_active,
    promotion_applies,
    promotion_value,
    resolve_promotions,
)
from storefront.services.pricing.types import PromotionSnapshot

from tests.fakes import product

NOW = datetime(2026, 3, 10, 12, 0, 0)


def promo(promo_id, value="10", discount_type="percentage", type="SITE_WIDE", created_offset=0, **kw):
    return PromotionSnapshot(
        id=promo_id,
        name=f"Promo {promo_id}",
        type=type,
        discount_type=discount_type,
        discount_value=Decimal(value),
        starts_at=kw.pop("starts_at", NOW - timedelta(days=1)),
        ends_at=kw.pop("ends_at", NOW + timedelta(days=1)),
        is_active=kw.pop("is_active", True),
        created_at=NOW - timedelta(days=30) + timedelta(minutes=created_offset),
        **kw,
    )


class TestActiveWindow:
    def test_window_is_half_open(self):
        """starts_at is inside the window, ends_at is not."""
        p = promo(1, starts_at=NOW, ends_at=NOW + timedelta(hours=1))
        assert is_promotion_active(p, NOW)
        assert not is_promotion_active(p, NOW + timedelta(hours=1))
        assert not is_promotion_active(p, NOW - timedelta(seconds=1))

    def test_inactive_flag_wins_over_window(self):
        assert not is_promotion_active(promo(1, is_active=False), NOW)


class TestScope:
    def test_site_wide_matches_everything(self):
        assert promotion_applies(promo(1), product(7))

    def test_category_brand_and_product_scopes(self):
        entry = product(7, category_id=3, brand_id=4)
        assert promotion_applies(promo(1, type="CATEGORY", category_ids=frozenset({3})), entry)
        assert promotion_applies(promo(2, type="BRAND", brand_ids=frozenset({4})), entry)
        assert promotion_applies(promo(3, type="PRODUCT", product_ids=frozenset({7})), entry)
        assert not promotion_applies(promo(4, type="CATEGORY", category_ids=frozenset({99})), entry)

    def test_uncategorised_product_is_not_matched_by_category_promo(self):
        assert not promotion_applies(promo(1, type="CATEGORY", category_ids=frozenset({3})), product(7))


class TestValue:
    def test_percentage_of_line(self):
        assert promotion_value(promo(1, "15"), Decimal("40.00"), 2) == Decimal("6.00")

    def test_fixed_is_per_unit(self):
        assert promotion_value(promo(1, "3", discount_type="fixed"), Decimal("40.00"), 4) == Decimal("12.00")

    def test_never_more_than_the_line(self):
        assert promotion_value(promo(1, "50", discount_type="fixed"), Decimal("20.00"), 1) == Decimal("20.00")


class TestBestPromotion:
    def test_picks_the_largest_discount(self):
        entry = product(1, category_id=2)
        promotions = [promo(1, "10"), promo(2, "25", type="CATEGORY", category_ids=frozenset({2}))]
        best = best_promotion(promotions, entry, Decimal("100.00"), 1, NOW)
        assert best.promotion_id == 2
        assert best.amount == Decimal("25.00")

    def test_tie_goes_to_earliest_created(self):
        """an equal discount from a later promotion never displaces an earlier one."""
        later = promo(1, "10", created_offset=60)
        earlier = promo(2, "10", created_offset=0)
        best = best_promotion([later, earlier], product(1), Decimal("100.00"), 1, NOW)
        assert best.promotion_id == 2

    def test_no_stacking_on_one_line(self):
        best = best_promotion([promo(1, "10"), promo(2, "10", created_offset=5)], product(1), Decimal("50.00"), 1, NOW)
        assert best.amount == Decimal("5.00")

    def test_expired_promotions_are_ignored(self):
        old = promo(1, "90", ends_at=NOW)
        assert best_promotion([old], product(1), Decimal("50.00"), 1, NOW) is None


class TestResolvePromotions:
    def test_lines_are_resolved_independently(self):
        a = product(1, category_id=1)
        b = product(2, category_id=2)
        promotions = [
            promo(1, "10", type="CATEGORY", category_ids=frozenset({1})),
            promo(2, "20", type="CATEGORY", category_ids=frozenset({2})),
        ]
        applied = resolve_promotions(promotions, [(a, Decimal("100.00"), 1), (b, Decimal("100.00"), 1)], NOW)
        assert [p.promotion_id for p in applied] == [1, 2]

    def test_deterministic(self):
        promotions = [promo(i, str(5 + i % 3), created_offset=i) for i in range(1, 8)]
        lines = [(product(1), Decimal("80.00"), 2), (product(2), Decimal("19.99"), 1)]
        first = resolve_promotions(promotions, lines, NOW)
        second = resolve_promotions(list(reversed(promotions)), lines, NOW)
        assert [(p.promotion_id, p.amount) for p in first] == [(p.promotion_id, p.amount) for p in second]

    def test_line_without_a_promotion_gets_none(self):
        applied = resolve_promotions(
            [promo(1, type="PRODUCT", product_ids=frozenset({5}))], [(product(1), Decimal("10.00"), 1)], NOW
        )
        assert applied == [None]
