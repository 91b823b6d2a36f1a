from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from storefront import models
from storefront.services.pricing.errors import NoShippingRateError
from storefront.services.pricing.money import ZERO, round_money, to_decimal
from storefront.services.pricing.types import (
    RATE_FREE,
    RATE_WEIGHT_BASED,
    Destination,
    ShippingQuote,
    ShippingRateSnapshot,
    ShippingZoneSnapshot,
)


class ShippingRepository:
    """base interface for the configured shipping zones and rates."""

    def list_zones_and_rates(self) -> Tuple[List[ShippingZoneSnapshot], List[ShippingRateSnapshot]]:  # pragma: no cover
        raise NotImplementedError


class SqlShippingRepository(ShippingRepository):
    def __init__(self, db: Session):
        self.db = db

    def list_zones_and_rates(self) -> Tuple[List[ShippingZoneSnapshot], List[ShippingRateSnapshot]]:
        zones = self.db.query(models.ShippingZone).order_by(models.ShippingZone.id.asc()).all()
        rates = self.db.query(models.ShippingRate).order_by(models.ShippingRate.id.asc()).all()
        return (
            [
                ShippingZoneSnapshot(
                    id=z.id,
                    name=z.name,
                    countries=frozenset(c.strip().upper() for c in (z.countries or []) if c and c.strip()),
                    is_active=bool(z.is_active),
                )
                for z in zones
            ],
            [
                ShippingRateSnapshot(
                    id=r.id,
                    zone_id=r.zone_id,
                    name=r.name,
                    type=r.type,
                    price=to_decimal(r.price),
                    min_order_amount=None if r.min_order_amount is None else to_decimal(r.min_order_amount),
                    min_days=r.min_days,
                    max_days=r.max_days,
                    is_active=bool(r.is_active),
                )
                for r in rates
            ],
        )


def zone_matches(zone: ShippingZoneSnapshot, destination: Destination) -> bool:
    if not zone.is_active:
        return False
    # a zone without countries is the catch-all "rest of world"
    if not zone.countries:
        return True
    return destination.country.strip().upper() in zone.countries


def rate_cost(rate: ShippingRateSnapshot, merchandise_total: Decimal, weight: Decimal) -> Decimal:
    if rate.type == RATE_FREE:
        return ZERO
    if rate.min_order_amount is not None and merchandise_total >= rate.min_order_amount:
        return ZERO
    if rate.type == RATE_WEIGHT_BASED:
        return round_money(rate.price * weight)
    return round_money(rate.price)


def select_rate(
    zones: Sequence[ShippingZoneSnapshot],
    rates: Sequence[ShippingRateSnapshot],
    destination: Destination,
    merchandise_total: Decimal,
    weight: Decimal = ZERO,
) -> ShippingQuote:
    """cheapest eligible rate for the destination; first listed wins a tie.

    `merchandise_total` is the post-discount, pre-tax amount, which is also
    what free-shipping thresholds are measured against.
    """
    matching_zone_ids = {z.id for z in zones if zone_matches(z, destination)}
    best: Optional[ShippingQuote] = None
    for rate in rates:
        if not rate.is_active or rate.zone_id not in matching_zone_ids:
            continue
        cost = rate_cost(rate, merchandise_total, weight)
        if best is None or cost < best.cost:
            best = ShippingQuote(
                rate_id=rate.id,
                zone_id=rate.zone_id,
                name=rate.name,
                cost=cost,
                min_days=rate.min_days,
                max_days=rate.max_days,
            )

    if best is None:
        raise NoShippingRateError(
            f"No shipping rate available for {destination.country}",
            country=destination.country,
        )
    return best
