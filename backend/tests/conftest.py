"""
Pytest fixtures for GroSave backend tests.

Provides test database setup, shopper/catalog fixtures, and test client.
"""

from datetime import timedelta

import pytest
from grosave import create_app
from grosave.extensions import db
from grosave.models import User, Product, PickupLocation, Transaction
from grosave.services import wallet_service, session_service
from grosave.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'MONTHLY_COIN_ALLOCATION': 4000,
        'MAX_BONUS_COINS_PER_MONTH': 500,
        'DEFAULT_SLOT_CAPACITY': 15,
        'EXPOSE_OTP': True,
        'REQUIRE_IDEMPOTENCY_KEY': False,
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


def make_user(phone: str, *, balance: int | None = None) -> User:
    """Create a user with a wallet; optionally force the starting balance."""
    user = User(phone=phone, is_verified=True)
    db.session.add(user)
    db.session.flush()
    wallet = wallet_service.create_wallet(user.id)
    if balance is not None:
        wallet.current_balance = balance
        wallet.monthly_credit = balance
        # the opening credit entry must match so the ledger still replays
        db.session.flush()
        db.session.query(Transaction).filter_by(user_id=user.id).update(
            {"amount": balance, "balance_after": balance}
        )
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def shopper(db_session):
    """Shopper with 1000 GroCoins."""
    return make_user("9876543210", balance=1000)


@pytest.fixture(scope='function')
def other_shopper(db_session):
    return make_user("9123456780", balance=1000)


@pytest.fixture(scope='function')
def product(db_session):
    """Active product: 50 coins, 23 units, expires in 4 days."""
    p = Product(
        name="Organic Whole Milk",
        brand="Happy Farms",
        category="Dairy",
        current_price=50,
        original_price=200,
        discount=75,
        expiry_status="warning",
        expiry_date=utcnow() + timedelta(days=4),
        units_available=23,
        is_active=True,
        dynamic_pricing_enabled=True,
        drop_to_price_at_hours_before_expiry=24,
        free_at_hours_before_expiry=6,
    )
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def location(db_session):
    loc = PickupLocation(
        name="Malleswaram Kirana Hub",
        address="Shop 12, Malleswaram Main Road",
        city="Bangalore",
        pincode="560003",
        time_slots=[{"id": "morning", "label": "Morning", "time": "8 AM - 12 PM", "available": 15}],
        is_active=True,
    )
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture(scope='function')
def pickup_day():
    return (utcnow() + timedelta(days=1)).date()


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def shopper_headers(shopper):
    _, token = session_service.create_session(shopper.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def other_headers(other_shopper):
    _, token = session_service.create_session(other_shopper.id)
    return auth_headers(token)
