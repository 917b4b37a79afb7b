"""
Pytest fixtures for POS backend tests.

Provides the test app (in-memory SQLite), a clean database per test,
catalog / payment-method factories and a recording notifier.
"""

import pytest
from backoffice import create_app
from backoffice.extensions import NOTIFIER_EXTENSION_KEY, db
from backoffice.models import PaymentMethod, Product
from backoffice.services.notification_service import EventNotifier
from backoffice.validation import parse_sale_request


CASHIER_ID = 7


class RecordingNotifier(EventNotifier):
    """Keeps every published event in memory."""

    def __init__(self):
        self.events = []

    def publish(self, channel, event, payload):
        self.events.append((channel, event, payload))

    def on(self, channel):
        return [e for e in self.events if e[0] == channel]


class FailingNotifier(EventNotifier):
    """Simulates an unreachable real-time transport."""

    def __init__(self):
        self.attempts = 0

    def publish(self, channel, event, payload):
        self.attempts += 1
        raise ConnectionError("event transport unavailable")


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'POS_COMMIT_RETRY_ATTEMPTS': 1,
        },
        notifier=RecordingNotifier(),
    )

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def notifier(app):
    """The app's recording notifier, emptied for this test."""
    recorder = app.extensions[NOTIFIER_EXTENSION_KEY]
    recorder.events.clear()
    return recorder


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: committed Product with sensible defaults."""
    counter = {"n": 0}

    def _make(quantity=10, price_cents=5000, is_active=True, name=None, sku=None):
        counter["n"] += 1
        product = Product(
            sku=sku or f"SKU-{counter['n']:03d}",
            name=name or f"Product {counter['n']}",
            price_cents=price_cents,
            quantity_on_hand=quantity,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def cash(db_session):
    method = PaymentMethod(name="Cash", code="CASH", type="cash", requires_reference=False)
    db_session.add(method)
    db_session.commit()
    return method


@pytest.fixture(scope='function')
def card(db_session):
    method = PaymentMethod(name="Card", code="CARD", type="card", requires_reference=True)
    db_session.add(method)
    db_session.commit()
    return method


@pytest.fixture(scope='function')
def actor_headers():
    return {'X-Actor-Id': str(CASHIER_ID)}


def sale_payload(lines, payments=(), **extra) -> dict:
    """Build a create-sale body from (product, quantity) pairs and (method, amount) pairs."""
    payload = {
        "items": [{"product_id": p.id, "quantity": q} for p, q in lines],
        "payments": [{"payment_method_id": m.id, "amount_cents": a} for m, a in payments],
    }
    payload.update(extra)
    return payload


def sale_request(lines, payments=(), **extra):
    return parse_sale_request(sale_payload(lines, payments, **extra))
