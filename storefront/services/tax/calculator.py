"""Tax calculation for the store's single configured rate."""
from dataclasses import dataclass
from decimal import Decimal

from storefront.services.pricing.money import ZERO, round_money, to_decimal
from storefront.services.pricing.types import StoreSettingsSnapshot


@dataclass
class TaxBreakdown:
    rate: Decimal
    base: Decimal
    amount: Decimal
    included: bool

    @property
    def added_to_total(self) -> Decimal:
        """inclusive tax is already inside the prices, so nothing is added."""
        return ZERO if self.included else self.amount


def calculate_tax(settings: StoreSettingsSnapshot, merchandise_total: Decimal, shipping_cost: Decimal = ZERO) -> TaxBreakdown:
    base = to_decimal(merchandise_total)
    if settings.tax_shipping:
        base += to_decimal(shipping_cost)
    base = round_money(base)

    rate = to_decimal(settings.tax_rate)
    if not settings.tax_enabled:
        return TaxBreakdown(rate=rate, base=base, amount=ZERO, included=False)
    if rate <= ZERO or base <= ZERO:
        return TaxBreakdown(rate=rate, base=base, amount=ZERO, included=settings.tax_included)

    fraction = rate / Decimal("100")
    if settings.tax_included:
        # back out the tax component embedded in the prices
        amount = round_money(base - base / (1 + fraction))
    else:
        amount = round_money(base * fraction)
    return TaxBreakdown(rate=rate, base=base, amount=amount, included=settings.tax_included)
