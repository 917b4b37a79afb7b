"""
Stock ledger tests.

Verifies:
- Decrement / increment change on-hand and write one movement each
- A decrement never takes stock below zero
- Manual adjustments by delta and by target
- Summary and low-stock reads
"""

import pytest

from backoffice.errors import InsufficientStockError, NotFoundError, ValidationError
from backoffice.models import Product, StockMovement
from backoffice.services import stock_service


class TestDecrementIncrement:
    def test_decrement_reduces_stock_and_records_movement(self, db_session, make_product):
        product = make_product(quantity=10)

        change = stock_service.decrement(product.id, 3, reason="POS sale", actor_id=1)
        db_session.commit()

        assert change.old_quantity == 10
        assert change.new_quantity == 7
        assert change.delta == -3
        assert db_session.get(Product, product.id).quantity_on_hand == 7

        movement = db_session.query(StockMovement).one()
        assert movement.movement_type == "SALE"
        assert movement.quantity_before == 10
        assert movement.quantity_after == 7
        assert movement.actor_id == 1

    def test_decrement_more_than_on_hand_is_rejected(self, db_session, make_product):
        product = make_product(quantity=2)

        with pytest.raises(InsufficientStockError) as exc:
            stock_service.decrement(product.id, 3, reason="POS sale", actor_id=1)
        db_session.rollback()

        line = exc.value.details["items"][0]
        assert line["available_quantity"] == 2
        assert line["requested_quantity"] == 3
        assert db_session.get(Product, product.id).quantity_on_hand == 2
        assert db_session.query(StockMovement).count() == 0

    def test_decrement_to_exactly_zero_is_allowed(self, db_session, make_product):
        product = make_product(quantity=4)
        change = stock_service.decrement(product.id, 4, reason="POS sale", actor_id=1)
        db_session.commit()
        assert change.new_quantity == 0

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.decrement(999, 1, reason="POS sale", actor_id=1)

    def test_inactive_product_rejected_when_required(self, db_session, make_product):
        product = make_product(quantity=5, is_active=False)
        with pytest.raises(ValidationError):
            stock_service.decrement(product.id, 1, reason="POS sale", actor_id=1, require_active=True)

    @pytest.mark.parametrize("quantity", [0, -1, True, 1.5])
    def test_quantity_must_be_positive_int(self, db_session, make_product, quantity):
        product = make_product()
        with pytest.raises(ValidationError):
            stock_service.decrement(product.id, quantity, reason="POS sale", actor_id=1)

    def test_reason_is_required(self, db_session, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            stock_service.increment(product.id, 1, reason="  ", actor_id=1)

    def test_increment_adds_stock(self, db_session, make_product):
        product = make_product(quantity=0)
        change = stock_service.increment(product.id, 5, reason="Delivery", actor_id=2)
        db_session.commit()
        assert change.new_quantity == 5
        assert change.movement_type == "ADD"

    def test_loaded_product_sees_new_quantity(self, db_session, make_product):
        product = make_product(quantity=10)
        assert product.quantity_on_hand == 10
        stock_service.decrement(product.id, 1, reason="POS sale", actor_id=1)
        assert product.quantity_on_hand == 9
        db_session.commit()


class TestAdjustStock:
    def test_positive_delta_is_add(self, db_session, make_product):
        product = make_product(quantity=3)
        change = stock_service.adjust_stock(product.id, delta=7, reason="Delivery", actor_id=1)
        assert change.movement_type == "ADD"
        assert change.new_quantity == 10

    def test_negative_delta_is_remove(self, db_session, make_product):
        product = make_product(quantity=3)
        change = stock_service.adjust_stock(product.id, delta=-2, reason="Damaged", actor_id=1)
        assert change.movement_type == "REMOVE"
        assert change.new_quantity == 1

    def test_target_is_correction(self, db_session, make_product):
        product = make_product(quantity=3)
        change = stock_service.adjust_stock(product.id, target_quantity=12, reason="Cycle count", actor_id=1)
        assert change.movement_type == "CORRECTION"
        assert change.old_quantity == 3
        assert change.new_quantity == 12

    def test_target_below_current(self, db_session, make_product):
        product = make_product(quantity=8)
        change = stock_service.adjust_stock(product.id, target_quantity=0, reason="Cycle count", actor_id=1)
        assert change.delta == -8
        assert db_session.get(Product, product.id).quantity_on_hand == 0

    def test_removal_below_zero_is_rejected(self, db_session, make_product):
        product = make_product(quantity=3)
        with pytest.raises(InsufficientStockError):
            stock_service.adjust_stock(product.id, delta=-4, reason="Shrink", actor_id=1)
        assert db_session.get(Product, product.id).quantity_on_hand == 3

    def test_requires_exactly_one_mode(self, db_session, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product.id, reason="x", actor_id=1)
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product.id, delta=1, target_quantity=2, reason="x", actor_id=1)

    def test_target_equal_to_current_is_rejected(self, db_session, make_product):
        product = make_product(quantity=5)
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product.id, target_quantity=5, reason="Count", actor_id=1)

    def test_unknown_product_target(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.adjust_stock(999, target_quantity=5, reason="Count", actor_id=1)


class TestReads:
    def test_inventory_summary(self, db_session, make_product):
        make_product(quantity=0)
        make_product(quantity=5)
        make_product(quantity=50)
        make_product(quantity=7, is_active=False)

        summary = stock_service.get_inventory_summary(low_stock_threshold=10)

        assert summary["total_products"] == 3
        assert summary["in_stock_products"] == 2
        assert summary["out_of_stock_products"] == 1
        assert summary["low_stock_products"] == 1
        assert summary["total_stock_quantity"] == 55

    def test_low_stock_lowest_first(self, db_session, make_product):
        make_product(quantity=9, name="B")
        make_product(quantity=2, name="A")
        make_product(quantity=40, name="C")

        rows = stock_service.list_low_stock(10)
        assert [p.quantity_on_hand for p in rows] == [2, 9]

    def test_movements_newest_first(self, db_session, make_product):
        product = make_product(quantity=10)
        stock_service.adjust_stock(product.id, delta=5, reason="Delivery", actor_id=1)
        stock_service.adjust_stock(product.id, delta=-1, reason="Damaged", actor_id=1)

        movements = stock_service.list_movements(product.id)
        assert [m.movement_type for m in movements] == ["REMOVE", "ADD"]

    def test_movements_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.list_movements(12345)
