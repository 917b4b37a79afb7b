"""
Concurrency tests for the sale pipeline.

Real threads against a temporary SQLite file, each thread with its own
app context and session.
"""
import os
import tempfile
import threading
import unittest

from backoffice import create_app
from backoffice.errors import InsufficientStockError
from backoffice.extensions import db
from backoffice.models import PosTransaction, Product, StockMovement
from backoffice.services import sale_service, stock_service
from backoffice.services.concurrency import begin_write_unit, run_with_retry
from backoffice.services.notification_service import NullNotifier
from backoffice.validation import parse_sale_request


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app(
            {
                "TESTING": True,
                "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
                "POS_COMMIT_TIMEOUT_SECONDS": 30,
                "POS_COMMIT_RETRY_ATTEMPTS": 5,
            },
            notifier=NullNotifier(),
        )

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            product = Product(
                sku="CONCUR-1",
                name="Concurrent Product",
                price_cents=1000,
                quantity_on_hand=10,
                is_active=True,
            )
            db.session.add(product)
            db.session.commit()
            self.product_id = product.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _sell(self, quantity):
        return parse_sale_request({"items": [{"product_id": self.product_id, "quantity": quantity}]})

    def _run_workers(self, quantities):
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(len(quantities))

        def worker(quantity):
            with self.app.app_context():
                try:
                    barrier.wait()
                    result = sale_service.process_sale(self._sell(quantity), cashier_id=1)
                    with lock:
                        results.append(("ok", quantity, result.transaction.transaction_number))
                except InsufficientStockError:
                    with lock:
                        results.append(("insufficient", quantity, None))
                except Exception as exc:
                    with lock:
                        results.append(("error", quantity, repr(exc)))
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(q,)) for q in quantities]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def test_concurrent_sales_do_not_oversell(self):
        results = self._run_workers([6, 6])

        outcomes = sorted(r[0] for r in results)
        self.assertEqual(outcomes, ["insufficient", "ok"], results)

        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            self.assertEqual(product.quantity_on_hand, 4)
            self.assertEqual(db.session.query(PosTransaction).count(), 1)

    def test_stock_never_negative_under_contention(self):
        quantities = [1, 2, 3, 1, 2, 3, 1, 2, 3, 1]
        results = self._run_workers(quantities)

        self.assertFalse([r for r in results if r[0] == "error"], results)
        sold = sum(q for status, q, _ in results if status == "ok")

        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            self.assertGreaterEqual(product.quantity_on_hand, 0)
            self.assertEqual(product.quantity_on_hand, 10 - sold)

            movements = db.session.query(StockMovement).all()
            self.assertEqual(-sum(m.quantity_delta for m in movements), sold)

    def test_concurrent_decrements_reject_exactly_the_excess(self):
        calls = 15
        outcomes = []
        lock = threading.Lock()
        barrier = threading.Barrier(calls)

        def worker():
            with self.app.app_context():
                def _op():
                    begin_write_unit()
                    stock_service.decrement(self.product_id, 1, reason="POS sale", actor_id=1)
                    db.session.commit()

                try:
                    barrier.wait()
                    run_with_retry(_op)
                    status = "ok"
                except InsufficientStockError:
                    db.session.rollback()
                    status = "insufficient"
                except Exception as exc:
                    db.session.rollback()
                    status = repr(exc)
                finally:
                    db.session.remove()
                with lock:
                    outcomes.append(status)

        threads = [threading.Thread(target=worker) for _ in range(calls)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(outcomes.count("ok"), 10, outcomes)
        self.assertEqual(outcomes.count("insufficient"), 5, outcomes)

        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            self.assertEqual(product.quantity_on_hand, 0)
            sales = db.session.query(StockMovement).filter_by(movement_type=stock_service.MOVEMENT_SALE).count()
            self.assertEqual(sales, 10)

    def test_transaction_numbers_unique_under_contention(self):
        with self.app.app_context():
            stock_service.adjust_stock(self.product_id, target_quantity=100, reason="Seed", actor_id=1)

        results = self._run_workers([1] * 8)

        numbers = [r[2] for r in results if r[0] == "ok"]
        self.assertEqual(len(numbers), 8, results)
        self.assertEqual(len(numbers), len(set(numbers)))


if __name__ == "__main__":
    unittest.main()
