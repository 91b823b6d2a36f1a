"""
Error taxonomy for pricing and order commit.

Structural failures are raised as exceptions and abort the whole operation.
Coupon and gift card problems are not raised; they come back as `Rejection`
records inside the pricing result, tagged with one of the reason kinds below.
"""
from typing import Any, Dict

# coupon rejection kinds
COUPON_NOT_FOUND = "CouponNotFound"
COUPON_EXPIRED = "CouponExpired"
COUPON_EXHAUSTED = "CouponExhausted"
COUPON_BELOW_MINIMUM = "CouponBelowMinimum"

# gift card rejection kinds
GIFT_CARD_NOT_FOUND = "GiftCardNotFound"
GIFT_CARD_INACTIVE = "GiftCardInactive"
GIFT_CARD_EXPIRED = "GiftCardExpired"
GIFT_CARD_EXHAUSTED = "GiftCardExhausted"
DUPLICATE_GIFT_CARD = "DuplicateGiftCard"


class StorefrontError(Exception):
    """base error carrying a serializable `kind` discriminant."""

    kind = "StorefrontError"

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "detail": self.detail, **self.context}


class PricingError(StorefrontError):
    kind = "PricingError"


class StaleCartError(PricingError):
    """a line item's product changed or disappeared; refresh the cart and re-price."""

    kind = "StaleCartError"


class NoShippingRateError(PricingError):
    kind = "NoShippingRate"


class CommitError(StorefrontError):
    kind = "CommitError"


class CommitConflictError(CommitError):
    """a stock, balance or usage guard failed at commit time; nothing was applied."""

    kind = "CommitConflict"
