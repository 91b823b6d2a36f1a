from sqlalchemy.orm import Session

from storefront import models
from storefront.core.config import settings as app_settings
from storefront.services.pricing.money import to_decimal
from storefront.services.pricing.types import StoreSettingsSnapshot


class StoreSettingsRepository:
    """base interface for store-wide pricing configuration."""

    def get(self) -> StoreSettingsSnapshot:  # pragma: no cover
        raise NotImplementedError


class SqlStoreSettingsRepository(StoreSettingsRepository):
    def __init__(self, db: Session):
        self.db = db

    def get(self) -> StoreSettingsSnapshot:
        row = self.db.query(models.StoreSettings).order_by(models.StoreSettings.id.asc()).first()
        if not row:
            # nothing saved yet: no tax, default currency
            return StoreSettingsSnapshot(currency=app_settings.DEFAULT_CURRENCY)
        return to_snapshot(row)


def to_snapshot(row: models.StoreSettings) -> StoreSettingsSnapshot:
    return StoreSettingsSnapshot(
        currency=row.currency,
        tax_enabled=bool(row.tax_enabled),
        tax_rate=to_decimal(row.tax_rate),
        tax_included=bool(row.tax_included),
        tax_shipping=bool(row.tax_shipping),
        gift_cards_cover_shipping=bool(row.gift_cards_cover_shipping),
        min_order_amount=None if row.min_order_amount is None else to_decimal(row.min_order_amount),
        track_inventory=bool(row.track_inventory),
    )


def get_or_create_settings(db: Session) -> models.StoreSettings:
    row = db.query(models.StoreSettings).order_by(models.StoreSettings.id.asc()).first()
    if not row:
        row = models.StoreSettings(
            currency=app_settings.DEFAULT_CURRENCY,
            currency_symbol=app_settings.DEFAULT_CURRENCY_SYMBOL,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
    return row
