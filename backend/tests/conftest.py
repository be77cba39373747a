"""
Pytest fixtures for posledger backend tests.

Provides test database setup, master-data fixtures, and test client.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from posledger import create_app
from posledger.extensions import db
from posledger.models import Client, Product, Supplier, User
from posledger.models.enums import AdjustmentType, UserRole
from posledger.services import adjustment_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STOCK_OVERSELL_POLICY': 'allow',
        'CREDIT_TERM_DAYS': 30,
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
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.config['STOCK_OVERSELL_POLICY'] = 'allow'


@pytest.fixture(scope='function')
def cashier(db_session):
    user = User(name="Casey Cashier", email="cashier@test.local", role=UserRole.CASHIER.value)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def manager(db_session):
    user = User(name="Morgan Manager", email="manager@test.local", role=UserRole.MANAGER.value)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: product row, optionally with opening stock posted as an adjustment."""
    counter = {"n": 0}

    def _make(name="Widget", price="10.00", cost="4.00", min_stock=0, stock=0, user=None):
        counter["n"] += 1
        product = Product(
            sku=f"SKU-{counter['n']:04d}",
            name=name,
            price=Decimal(price),
            cost=Decimal(cost) if cost is not None else None,
            min_stock=min_stock,
        )
        db_session.add(product)
        db_session.commit()
        if stock:
            adjustment_service.post_adjustment(
                product_id=product.id,
                quantity_change=stock,
                adjustment_type=AdjustmentType.OPENING_STOCK.value,
                reason="Opening balance",
                created_by=user.id,
            )
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product, manager):
    """Product with 50 units on hand."""
    return make_product(name="Espresso Beans", price="24.90", cost="14.00", stock=50, user=manager)


@pytest.fixture(scope='function')
def credit_client(db_session):
    """Client with balance 100.00 of a 150.00 limit."""
    c = Client(
        name="Corner Office",
        credit_balance=Decimal("100.00"),
        credit_limit=Decimal("150.00"),
    )
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def supplier(db_session):
    s = Supplier(name="Demo Wholesale", email="orders@wholesale.local")
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture(scope='function')
def fail_on_call():
    """Wrap a callable so its n-th call raises a database OperationalError."""
    def _wrap(real, n=2):
        calls = {"count": 0}

        def wrapper(*args, **kwargs):
            calls["count"] += 1
            if calls["count"] == n:
                raise OperationalError("UPDATE stocks", {}, Exception("disk I/O error"))
            return real(*args, **kwargs)

        return wrapper

    return _wrap
