"""HTTP tests for pricing, coupon preview, gift card check and order placement."""

from decimal import Decimal

from storefront import models
from storefront.core.security import create_access_token

US = {"country": "US", "city": "Portland", "line1": "1 Main St", "name": "Pat Doe"}


class TestCartPrice:
    def test_full_pricing_pass(self, client, store, product, flat_shipping, site_wide_promotion, save10):
        resp = client.post("/api/v1/cart/price", json={
            "items": [{"product_id": product.id, "quantity": 1, "unit_price": 100.0}],
            "coupon_code": "save10",
            "destination": US,
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["subtotal"] == 100.0
        assert body["promotion_discount"] == 10.0
        assert body["coupon_discount"] == 10.0
        assert body["shipping_cost"] == 5.0
        assert body["tax_amount"] == 6.4
        assert body["grand_total"] == 91.4
        assert body["shipping_rate"]["name"] == "Standard"
        assert body["applied_coupon_code"] == "SAVE10"

    def test_rejections_are_part_of_the_result(self, client, product):
        resp = client.post("/api/v1/cart/price", json={
            "items": [{"product_id": product.id, "quantity": 1}],
            "coupon_code": "NOPE",
            "gift_card_codes": ["ZZZZ-ZZZZ-ZZZZ-ZZZZ"],
        })
        assert resp.status_code == 200
        kinds = [r["kind"] for r in resp.json()["rejections"]]
        assert kinds == ["CouponNotFound", "GiftCardNotFound"]
        assert resp.json()["grand_total"] == 100.0

    def test_stale_price_is_a_conflict(self, client, product):
        resp = client.post("/api/v1/cart/price", json={
            "items": [{"product_id": product.id, "quantity": 1, "unit_price": 90.0}],
        })
        assert resp.status_code == 409
        assert resp.json()["kind"] == "StaleCartError"
        assert resp.json()["reason"] == "price_changed"

    def test_unserved_destination(self, client, product, flat_shipping):
        resp = client.post("/api/v1/cart/price", json={
            "items": [{"product_id": product.id, "quantity": 1}],
            "destination": {"country": "JP"},
        })
        assert resp.status_code == 422
        assert resp.json()["kind"] == "NoShippingRate"

    def test_quantity_must_be_positive(self, client, product):
        resp = client.post("/api/v1/cart/price", json={"items": [{"product_id": product.id, "quantity": 0}]})
        assert resp.status_code == 422

    def test_empty_cart(self, client):
        assert client.post("/api/v1/cart/price", json={"items": []}).status_code == 400


class TestPromoValidate:
    def test_valid_coupon(self, client, save10):
        resp = client.post("/api/v1/promo/validate", json={"code": "Save10", "subtotal": 60})
        assert resp.json() == {"valid": True, "discount": 10.0, "reason": None, "code": "SAVE10"}

    def test_below_minimum(self, client, save10):
        resp = client.post("/api/v1/promo/validate", json={"code": "SAVE10", "subtotal": 20})
        assert resp.json()["reason"] == "CouponBelowMinimum"

    def test_preview_does_not_count_usage(self, client, db, save10):
        client.post("/api/v1/promo/validate", json={"code": "SAVE10", "subtotal": 60})
        db.expire_all()
        assert db.get(models.Coupon, save10.id).uses_count == 0


class TestGiftCardCheck:
    def test_known_card(self, client, gift_card):
        resp = client.post("/api/v1/gift-cards/check", json={"code": gift_card.code.lower()})
        body = resp.json()
        assert body["valid"]
        assert body["balance"] == 25.0
        assert body["status"] == "ACTIVE"

    def test_unknown_card(self, client, db):
        resp = client.post("/api/v1/gift-cards/check", json={"code": "NOPE-NOPE-NOPE-NOPE"})
        assert resp.json()["valid"] is False
        assert resp.json()["reason"] == "GiftCardNotFound"


class TestOrders:
    def _place(self, client, headers, key, **extra):
        payload = {"items": [{"product_id": 1, "quantity": 1}], "destination": US, **extra}
        return client.post("/api/v1/orders", json=payload, headers={**headers, "Idempotency-Key": key})

    def test_requires_auth(self, client, product, flat_shipping):
        resp = client.post("/api/v1/orders", json={"items": [{"product_id": 1, "quantity": 1}], "destination": US},
                           headers={"Idempotency-Key": "x"})
        assert resp.status_code == 401

    def test_requires_idempotency_key(self, client, user_headers, product, flat_shipping):
        resp = client.post("/api/v1/orders", json={"items": [{"product_id": 1, "quantity": 1}], "destination": US},
                           headers=user_headers)
        assert resp.status_code == 422

    def test_place_order(self, client, db, user_headers, store, product, flat_shipping, gift_card):
        resp = self._place(client, user_headers, "order-1", gift_card_codes=[gift_card.code])
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "Pending"
        assert body["grand_total"] == 88.0  # 100 + 5 + 8 - 25
        assert body["gift_card_redemptions"] == [{"code": gift_card.code, "amount": 25.0}]
        assert body["items"][0]["title_snapshot"] == "Walnut Desk"

        db.expire_all()
        assert db.get(models.Product, product.id).stock == 4

    def test_retry_with_same_key_returns_same_order(self, client, db, user_headers, product, flat_shipping):
        first = self._place(client, user_headers, "same-key").json()
        second = self._place(client, user_headers, "same-key").json()
        assert first["id"] == second["id"]
        db.expire_all()
        assert db.get(models.Product, product.id).stock == 4

    def test_key_owned_by_someone_else(self, client, db, user_headers, product, flat_shipping):
        self._place(client, user_headers, "shared")
        other = models.User(full_name="Other", email="other@example.com")
        db.add(other)
        db.commit()
        headers = {"Authorization": f"Bearer {create_access_token(str(other.id))}"}
        assert self._place(client, headers, "shared").status_code == 409

    def test_below_store_minimum(self, client, db, user_headers, product, flat_shipping):
        db.add(models.StoreSettings(min_order_amount=Decimal("500.00")))
        db.commit()
        assert self._place(client, user_headers, "small").status_code == 400

    def test_get_order_visibility(self, client, db, user_headers, admin_headers, product, flat_shipping):
        order_id = self._place(client, user_headers, "mine").json()["id"]
        assert client.get(f"/api/v1/orders/{order_id}", headers=user_headers).status_code == 200
        assert client.get(f"/api/v1/orders/{order_id}", headers=admin_headers).status_code == 200

        other = models.User(full_name="Other", email="other@example.com")
        db.add(other)
        db.commit()
        headers = {"Authorization": f"Bearer {create_access_token(str(other.id))}"}
        assert client.get(f"/api/v1/orders/{order_id}", headers=headers).status_code == 404

    def test_my_orders(self, client, user_headers, product, flat_shipping):
        self._place(client, user_headers, "one")
        self._place(client, user_headers, "two")
        resp = client.get("/api/v1/orders/mine", headers=user_headers)
        assert len(resp.json()) == 2

    def test_checkout_needs_a_destination(self, client, db, user_headers, store, product, flat_shipping):
        """an order without an address would skip shipping entirely."""
        resp = client.post("/api/v1/orders", json={"items": [{"product_id": 1, "quantity": 1}]},
                           headers={**user_headers, "Idempotency-Key": "no-address"})
        assert resp.status_code == 422
        assert db.query(models.Order).count() == 0

    def test_unserved_destination_blocks_checkout(self, client, db, user_headers, product, flat_shipping):
        resp = self._place(client, user_headers, "far-away", destination={"country": "JP"})
        assert resp.status_code == 422
        assert resp.json()["kind"] == "NoShippingRate"
        assert db.query(models.Order).count() == 0
