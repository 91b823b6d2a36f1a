import logging
import secrets
import string
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront import models
from storefront.core.config import settings
from storefront.services.pricing.money import round_money
from storefront.services.pricing.types import ACTIVE

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_GROUPS = 4
CODE_GROUP_LENGTH = 4


class CodeGenerationError(RuntimeError):
    pass


def generate_code() -> str:
    """random XXXX-XXXX-XXXX-XXXX code over A-Z0-9."""
    return "-".join(
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_GROUP_LENGTH))
        for _ in range(CODE_GROUPS)
    )


def issue_gift_card(
    db: Session,
    initial_amount: Decimal,
    expires_at: Optional[datetime] = None,
    recipient_email: Optional[str] = None,
    sender_name: Optional[str] = None,
    message: Optional[str] = None,
    status: str = ACTIVE,
    max_attempts: Optional[int] = None,
) -> models.GiftCard:
    """create a gift card under a fresh unique code.

    The unique constraint on `gift_cards.code` is the real guard; the lookup
    before insert just avoids a round trip in the common collision case.
    """
    max_attempts = max_attempts or settings.GIFT_CARD_CODE_MAX_ATTEMPTS
    amount = round_money(initial_amount)

    for attempt in range(1, max_attempts + 1):
        code = generate_code()
        if db.query(models.GiftCard.id).filter(models.GiftCard.code == code).first():
            logger.warning(f"Gift card code collision on attempt {attempt}, regenerating")
            continue

        card = models.GiftCard(
            code=code,
            initial_amount=amount,
            balance=amount,
            status=status,
            expires_at=expires_at,
            recipient_email=recipient_email or None,
            sender_name=sender_name,
            message=message,
        )
        db.add(card)
        try:
            db.commit()
        except IntegrityError:
            # someone inserted the same code between our check and insert
            db.rollback()
            logger.warning(f"Gift card code collision at insert on attempt {attempt}, regenerating")
            continue
        db.refresh(card)
        logger.info(f"Issued gift card {card.id} for {amount}")
        return card

    logger.error(f"Could not find a free gift card code after {max_attempts} attempts")
    raise CodeGenerationError("Could not generate a unique gift card code")
