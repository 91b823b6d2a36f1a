"""Tests for gift card code generation and issuing."""

import re
from decimal import Decimal
from unittest.mock import patch

import pytest

from storefront import models
from storefront.services.giftcards import codes
from storefront.services.giftcards.codes import CodeGenerationError, generate_code, issue_gift_card

CODE_RE = re.compile(r"^[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]{4}$")


class TestGenerateCode:
    def test_format(self):
        for _ in range(50):
            assert CODE_RE.match(generate_code())


class TestIssueGiftCard:
    def test_issues_active_card_with_full_balance(self, db):
        card = issue_gift_card(db, Decimal("50"))
        assert CODE_RE.match(card.code)
        assert card.balance == Decimal("50.00")
        assert card.initial_amount == Decimal("50.00")
        assert card.status == "ACTIVE"

    def test_retries_on_collision(self, db):
        db.add(models.GiftCard(code="AAAA-AAAA-AAAA-AAAA", initial_amount=Decimal("5"), balance=Decimal("5")))
        db.commit()

        generated = iter(["AAAA-AAAA-AAAA-AAAA", "AAAA-AAAA-AAAA-AAAA", "BBBB-BBBB-BBBB-BBBB"])
        with patch.object(codes, "generate_code", side_effect=lambda: next(generated)):
            card = issue_gift_card(db, Decimal("20"))
        assert card.code == "BBBB-BBBB-BBBB-BBBB"

    def test_gives_up_after_max_attempts(self, db):
        db.add(models.GiftCard(code="AAAA-AAAA-AAAA-AAAA", initial_amount=Decimal("5"), balance=Decimal("5")))
        db.commit()

        with patch.object(codes, "generate_code", return_value="AAAA-AAAA-AAAA-AAAA"):
            with pytest.raises(CodeGenerationError):
                issue_gift_card(db, Decimal("20"), max_attempts=3)
