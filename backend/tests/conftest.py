"""
Pytest fixtures for order cycle backend tests.

Provides the test app on an in-memory database, a per-test table wipe,
reference data (suppliers, customers, products) and a fake message
provider that records every send.
"""

import pytest

from ordercycle import create_app
from ordercycle.extensions import db
from ordercycle.models import Customer, Product, Supplier
from ordercycle.services import sale_order_service
from ordercycle.services.messaging import MessageProvider, RecipientResult, SendResult


WATCHED = "daily_food"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': 'UTC',
        'WATCHED_CATEGORY': WATCHED,
        'SMS_PROVIDER': 'log',
        'SMS_SEND_INTERVAL_SECONDS': 0,
        'TRANSACTION_RETRY_BACKOFF': 0,
        'DEBUG_SEED_ENABLED': False,
    })

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
        db.session.rollback()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


class FakeMessageProvider(MessageProvider):
    """Records messages; numbers in `failing` are rejected, numbers in `raising` blow up."""

    def __init__(self):
        self.sent = []
        self.failing = set()
        self.raising = set()

    def send(self, message, recipients, options=None):
        results = []
        for recipient in recipients:
            self.sent.append((recipient.phone, message))
            if recipient.phone in self.raising:
                raise RuntimeError("gateway unreachable")
            if recipient.phone in self.failing:
                results.append(RecipientResult(phone=recipient.phone, success=False, error="rejected"))
            else:
                results.append(RecipientResult(
                    phone=recipient.phone, success=True, message_id=f"fake-{len(self.sent)}",
                ))
        return SendResult.from_results(results)


@pytest.fixture(scope='function')
def message_provider(app):
    """Swap the app's message provider for a recording fake."""
    previous = app.extensions["message_provider"]
    fake = FakeMessageProvider()
    app.extensions["message_provider"] = fake
    yield fake
    app.extensions["message_provider"] = previous


@pytest.fixture(scope='function')
def supplier_a(db_session):
    """Supplier with two valid contacts."""
    supplier = Supplier(
        business_number="111-11-11111",
        name="Sunrise Tofu",
        primary_contact_name="Park",
        primary_contact_mobile="010-1111-2222",
        secondary_contact_name="Choi",
        secondary_contact_mobile="010-3333-4444",
    )
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def supplier_b(db_session):
    """Supplier with a single contact."""
    supplier = Supplier(
        business_number="222-22-22222",
        name="Green Sprouts",
        primary_contact_name="Han",
        primary_contact_mobile="010-5555-6666",
    )
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(business_number="900-00-00001", name="Corner Market")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def tofu(db_session, supplier_a):
    product = Product(
        code="TOFU-300", name="Tofu", specification="300g", category=WATCHED,
        supplier_id=supplier_a.id, purchase_price=100, sale_price=2000,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def soy_milk(db_session, supplier_a):
    product = Product(
        code="SOY-1L", name="Soy milk", specification="1L", category=WATCHED,
        supplier_id=supplier_a.id, purchase_price=200, sale_price=2000,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def sprouts(db_session, supplier_b):
    product = Product(
        code="SPROUT-1K", name="Bean sprouts", specification="1kg", category=WATCHED,
        supplier_id=supplier_b.id, purchase_price=500, sale_price=1500,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def rice(db_session, supplier_b):
    """Product outside the watched category."""
    product = Product(
        code="RICE-10K", name="Rice", specification="10kg", category="dry_goods",
        supplier_id=supplier_b.id, purchase_price=20000, sale_price=30000,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def place_order(db_session, customer):
    """Factory: place_order([(product, qty), ...], now=...) -> SaleOrder."""
    def _place(items, *, now=None, order_type="customer"):
        return sale_order_service.create_sale_order(
            customer_id=customer.id,
            items=[{"product_id": product.id, "quantity": quantity} for product, quantity in items],
            order_type=order_type,
            created_by="test",
            now=now,
        )
    return _place
