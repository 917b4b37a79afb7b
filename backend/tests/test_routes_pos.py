"""
POS API tests.

Verifies:
- Mutating and reading routes require X-Actor-Id (401)
- Create sale: 201 on commit, 200 on replay, 400 with per-line / per-field
  details, 500 on commit failure
- History, detail, payments, void, products and payment methods
"""

import pytest

from backoffice.extensions import NOTIFIER_EXTENSION_KEY
from backoffice.models import PosTransaction, Product
from backoffice.services import transaction_service

from conftest import CASHIER_ID, FailingNotifier, sale_payload


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestRequiresActor:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/pos/transactions"),
            ("POST", "/api/pos/check-stock"),
            ("GET", "/api/pos/transactions"),
            ("GET", "/api/pos/transactions/1"),
            ("POST", "/api/pos/transactions/1/payments"),
            ("POST", "/api/pos/transactions/1/void"),
            ("GET", "/api/pos/products"),
            ("GET", "/api/pos/payment-methods"),
            ("POST", "/api/inventory/adjust"),
            ("GET", "/api/inventory/summary"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_invalid_actor(self, client, db_session):
        resp = client.get("/api/pos/transactions", headers={"X-Actor-Id": "abc"})
        assert resp.status_code == 401


# =============================================================================
# CREATE SALE
# =============================================================================


class TestCreateSale:
    def test_created(self, client, db_session, make_product, cash, actor_headers, notifier):
        product = make_product(quantity=10, price_cents=5000)

        resp = client.post(
            "/api/pos/transactions",
            json=sale_payload([(product, 2)], [(cash, 10800)], tax_cents=800),
            headers=actor_headers,
        )

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["success"] is True
        assert body["replayed"] is False
        tx = body["transaction"]
        assert tx["subtotal_cents"] == 10000
        assert tx["total_cents"] == 10800
        assert tx["status"] == "completed"
        assert tx["payment_status"] == "paid"
        assert tx["cashier_id"] == CASHIER_ID
        assert tx["items"][0]["product_name"] == product.name
        assert body["inventory_updates"][0]["new_quantity"] == 8
        assert db_session.get(Product, product.id).quantity_on_hand == 8
        assert len(notifier.on("inventory")) == 1

    def test_replay_returns_200(self, client, db_session, make_product, cash, actor_headers):
        product = make_product(quantity=10)
        payload = sale_payload([(product, 1)], [(cash, 5000)], idempotency_key="reg-2-0042")

        first = client.post("/api/pos/transactions", json=payload, headers=actor_headers)
        second = client.post("/api/pos/transactions", json=payload, headers=actor_headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.get_json()["replayed"] is True
        assert second.get_json()["transaction"]["id"] == first.get_json()["transaction"]["id"]
        assert db_session.get(Product, product.id).quantity_on_hand == 9

    def test_insufficient_stock_details(self, client, db_session, make_product, actor_headers):
        product = make_product(quantity=1)

        resp = client.post("/api/pos/transactions", json=sale_payload([(product, 3)]), headers=actor_headers)

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"]
        [line] = body["details"]["items"]
        assert line["product_id"] == product.id
        assert line["available_quantity"] == 1
        assert line["requested_quantity"] == 3
        assert db_session.query(PosTransaction).count() == 0

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"items": []}, "items"),
            ({"items": [{"product_id": 1, "quantity": 0}]}, "items[0].quantity"),
            ({"items": [{"product_id": 1, "quantity": 1.5}]}, "items[0].quantity"),
            ({"items": [{"product_id": 1, "quantity": "1e3"}]}, "items[0].quantity"),
            ({"items": [{"quantity": 1}]}, "items[0].product_id"),
            (
                {"items": [{"product_id": 1, "quantity": 1}], "payments": [{"payment_method_id": 1, "amount_cents": -1}]},
                "payments[0].amount_cents",
            ),
            ({"items": [{"product_id": 1, "quantity": 1}], "tax_cents": -5}, "tax_cents"),
            ({"items": [{"product_id": 1, "quantity": 1}], "customer": {"email": "nope"}}, "customer.email"),
            ({"items": [{"product_id": 2**70, "quantity": 1}]}, "items[0].product_id"),
        ],
    )
    def test_validation_details(self, client, db_session, actor_headers, payload, field):
        resp = client.post("/api/pos/transactions", json=payload, headers=actor_headers)
        assert resp.status_code == 400
        assert field in resp.get_json()["details"]["fields"]

    def test_not_json(self, client, db_session, actor_headers):
        resp = client.post("/api/pos/transactions", data="garbage", headers=actor_headers)
        assert resp.status_code == 400

    def test_notification_failure_still_201(self, app, client, db_session, make_product, cash, actor_headers, monkeypatch):
        product = make_product(quantity=10)
        monkeypatch.setitem(app.extensions, NOTIFIER_EXTENSION_KEY, FailingNotifier())

        resp = client.post(
            "/api/pos/transactions",
            json=sale_payload([(product, 1)], [(cash, 5000)]),
            headers=actor_headers,
        )

        assert resp.status_code == 201
        tx_id = resp.get_json()["transaction"]["id"]
        detail = client.get(f"/api/pos/transactions/{tx_id}", headers=actor_headers)
        assert detail.status_code == 200
        assert detail.get_json()["transaction"]["status"] == "completed"

    def test_commit_failure_is_500(self, client, db_session, make_product, actor_headers, monkeypatch):
        product = make_product(quantity=10)

        def broken_recorder(sale, *, cashier_id):
            raise RuntimeError("boom")

        monkeypatch.setattr(transaction_service, "create_transaction", broken_recorder)

        resp = client.post("/api/pos/transactions", json=sale_payload([(product, 1)]), headers=actor_headers)

        assert resp.status_code == 500
        assert db_session.get(Product, product.id).quantity_on_hand == 10


# =============================================================================
# READS, PAYMENTS, VOID
# =============================================================================


class TestOtherRoutes:
    def test_check_stock(self, client, db_session, make_product, actor_headers):
        product = make_product(quantity=2)

        resp = client.post(
            "/api/pos/check-stock",
            json={"items": [{"product_id": product.id, "quantity": 1}, {"product_id": product.id, "quantity": 5}]},
            headers=actor_headers,
        )

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["all_available"] is False
        assert [i["available"] for i in body["items"]] == [True, False]
        assert db_session.get(Product, product.id).quantity_on_hand == 2

    def test_history_and_detail(self, client, db_session, make_product, cash, actor_headers):
        product = make_product(quantity=10)
        client.post("/api/pos/transactions", json=sale_payload([(product, 1)], [(cash, 5000)]), headers=actor_headers)
        client.post("/api/pos/transactions", json=sale_payload([(product, 1)]), headers=actor_headers)

        resp = client.get("/api/pos/transactions?status=pending", headers=actor_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["pagination"]["total"] == 1
        assert body["transactions"][0]["payment_status"] == "unpaid"

        bad = client.get("/api/pos/transactions?page=zero", headers=actor_headers)
        assert bad.status_code == 400

        missing = client.get("/api/pos/transactions/999", headers=actor_headers)
        assert missing.status_code == 404

    def test_add_payment_and_void(self, client, db_session, make_product, cash, actor_headers):
        product = make_product(quantity=10, price_cents=10000)
        created = client.post(
            "/api/pos/transactions",
            json=sale_payload([(product, 1)], [(cash, 2500)]),
            headers=actor_headers,
        ).get_json()["transaction"]

        paid = client.post(
            f"/api/pos/transactions/{created['id']}/payments",
            json={"payment_method_id": cash.id, "amount_cents": 7500},
            headers=actor_headers,
        )
        assert paid.status_code == 201
        assert paid.get_json()["transaction"]["status"] == "completed"

        no_reason = client.post(f"/api/pos/transactions/{created['id']}/void", json={}, headers=actor_headers)
        assert no_reason.status_code == 400

        voided = client.post(
            f"/api/pos/transactions/{created['id']}/void",
            json={"reason": "Wrong item"},
            headers=actor_headers,
        )
        assert voided.status_code == 200
        assert voided.get_json()["transaction"]["status"] == "voided"
        assert db_session.get(Product, product.id).quantity_on_hand == 10

        again = client.post(
            f"/api/pos/transactions/{created['id']}/void",
            json={"reason": "Wrong item"},
            headers=actor_headers,
        )
        assert again.status_code == 400

    def test_out_of_range_integers_rejected(self, client, db_session, actor_headers):
        huge = "99999999999999999999"

        check = client.post(
            "/api/pos/check-stock",
            json={"items": [{"product_id": 2**70, "quantity": 1}]},
            headers=actor_headers,
        )
        assert check.status_code == 400
        assert "items[0].product_id" in check.get_json()["details"]["fields"]

        assert client.get(f"/api/pos/transactions?page={huge}", headers=actor_headers).status_code == 400
        assert client.get(f"/api/pos/products?page={huge}", headers=actor_headers).status_code == 400
        assert client.get(f"/api/pos/transactions/{huge}", headers=actor_headers).status_code == 404
        assert client.get(f"/api/inventory/low-stock?threshold={huge}", headers=actor_headers).status_code == 400

    def test_void_unknown_is_404(self, client, db_session, actor_headers):
        resp = client.post("/api/pos/transactions/404/void", json={"reason": "x"}, headers=actor_headers)
        assert resp.status_code == 404

    def test_products_lists_sellable_only(self, client, db_session, make_product, actor_headers):
        make_product(quantity=5, name="Green Tea", sku="TEA-1")
        make_product(quantity=0, name="Black Tea", sku="TEA-2")
        make_product(quantity=5, name="Retired Tea", sku="TEA-3", is_active=False)
        make_product(quantity=5, name="Coffee", sku="COF-1")

        resp = client.get("/api/pos/products?search=tea", headers=actor_headers)
        assert resp.status_code == 200
        assert [p["sku"] for p in resp.get_json()["items"]] == ["TEA-1"]

        paged = client.get("/api/pos/products?page=1&per_page=1", headers=actor_headers).get_json()
        assert paged["pagination"]["total"] == 2
        assert paged["count"] == 1

    def test_payment_methods(self, client, db_session, cash, card, actor_headers):
        resp = client.get("/api/pos/payment-methods", headers=actor_headers)
        assert resp.status_code == 200
        codes = {m["code"]: m["requires_reference"] for m in resp.get_json()["payment_methods"]}
        assert codes == {"CASH": False, "CARD": True}

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"
