# Overview: Pytest coverage for the GroCoin wallet ledger.

from datetime import datetime

import pytest

from grosave.extensions import db
from grosave.exceptions import InsufficientBalanceError
from grosave.models import User, Transaction, EarnEvent, Notification
from grosave.services import wallet_service, earn_service

from conftest import make_user


def test_create_wallet_opens_with_allocation(db_session):
    user = User(phone="9000000001")
    db.session.add(user)
    db.session.flush()

    now = datetime(2025, 1, 31, 10, 0, 0)
    wallet = wallet_service.create_wallet(user.id, now=now)
    db.session.commit()

    assert wallet.current_balance == 4000
    assert wallet.monthly_credit == 4000
    assert wallet.spent == 0
    assert wallet.bonus_earned == 0
    # Jan 31 + 1 month clamps to Feb 28
    assert wallet.refill_date == datetime(2025, 2, 28, 10, 0, 0)

    opening = db.session.query(Transaction).filter_by(user_id=user.id).one()
    assert opening.type == "credit"
    assert opening.amount == 4000
    assert opening.balance_after == 4000
    assert wallet_service.replay_balance(user.id) == 4000


def test_debit_and_refund_pair_with_ledger(shopper):
    wallet = wallet_service.require_wallet(shopper.id)
    wallet_service.debit(wallet, 300, description="Order X")
    wallet_service.refund(wallet, 100, description="Refund: Order X")
    db.session.commit()

    assert wallet.current_balance == 800
    assert wallet.spent == 200
    rows = db.session.query(Transaction).filter_by(user_id=shopper.id).order_by(Transaction.id).all()
    assert [(t.type, t.amount, t.balance_after) for t in rows] == [
        ("credit", 1000, 1000),
        ("debit", 300, 700),
        ("refund", 100, 800),
    ]
    assert wallet_service.replay_balance(shopper.id) == wallet.current_balance


def test_debit_beyond_balance_is_rejected(shopper):
    wallet = wallet_service.require_wallet(shopper.id)
    with pytest.raises(InsufficientBalanceError) as exc:
        wallet_service.debit(wallet, 1001, description="too much")
    assert exc.value.payload == {"required": 1001, "balance": 1000}
    assert wallet.current_balance == 1000
    assert db.session.query(Transaction).filter_by(type="debit").count() == 0


def test_bonus_is_clamped_to_ceiling(shopper):
    wallet = wallet_service.require_wallet(shopper.id)
    wallet.bonus_earned = 480
    db.session.commit()

    credited = earn_service.earn(shopper.id, "referral", {"referredPhone": "9999999999"})
    assert credited == 20

    wallet = wallet_service.require_wallet(shopper.id)
    assert wallet.bonus_earned == 500
    assert wallet.current_balance == 1020

    event = db.session.query(EarnEvent).one()
    assert (event.type, event.amount, event.meta) == ("referral", 20, {"referredPhone": "9999999999"})
    note = db.session.query(Notification).one()
    assert (note.type, note.title, note.message) == ("wallet", "Bonus Earned", "You earned 20 GroCoins!")


def test_bonus_at_ceiling_writes_nothing(shopper):
    wallet = wallet_service.require_wallet(shopper.id)
    wallet.bonus_earned = 500
    db.session.commit()

    assert earn_service.earn(shopper.id, "ad", {"adId": "a1"}) == 0
    assert db.session.query(Transaction).filter_by(type="bonus").count() == 0
    assert db.session.query(EarnEvent).count() == 0
    assert db.session.query(Notification).count() == 0


@pytest.mark.parametrize("earn_type, amount", [("ad", 10), ("survey", 25), ("referral", 50)])
def test_earn_amounts(shopper, earn_type, amount):
    assert earn_service.earn(shopper.id, earn_type) == amount
    bonus = db.session.query(Transaction).filter_by(type="bonus").one()
    assert bonus.amount == amount
    assert bonus.balance_after == 1000 + amount


def test_monthly_refill_tops_up_and_resets(db_session):
    user = make_user("9000000002")
    wallet = wallet_service.require_wallet(user.id)
    wallet.current_balance = 1500
    wallet.spent = 2500
    wallet.bonus_earned = 120
    wallet.refill_date = datetime(2025, 3, 1)
    db.session.commit()

    entry = wallet_service.credit_monthly_allocation(wallet, now=datetime(2025, 3, 2))
    db.session.commit()

    assert entry.type == "credit"
    assert entry.amount == 2500
    assert entry.balance_after == 4000
    assert wallet.current_balance == 4000
    assert wallet.spent == 0
    assert wallet.bonus_earned == 0
    assert wallet.refill_date == datetime(2025, 4, 1)


def test_refill_not_due_does_nothing(shopper):
    wallet = wallet_service.require_wallet(shopper.id)
    assert wallet_service.credit_monthly_allocation(wallet, now=datetime(2000, 1, 1)) is None


def test_refill_due_wallets(db_session):
    due = make_user("9000000003")
    make_user("9000000004")
    wallet = wallet_service.require_wallet(due.id)
    wallet.current_balance = 0
    wallet.refill_date = datetime(2020, 1, 15)
    db.session.commit()

    count = wallet_service.refill_due_wallets(now=datetime(2020, 1, 16))
    assert count == 1
    wallet = wallet_service.require_wallet(due.id)
    assert wallet.current_balance == 4000
    assert wallet.refill_date == datetime(2020, 2, 15)


def test_balance_summary(shopper):
    wallet = wallet_service.require_wallet(shopper.id)
    wallet.refill_date = datetime(2025, 5, 10, 12, 0, 0)
    db.session.commit()

    summary = wallet_service.balance_summary(shopper.id, now=datetime(2025, 5, 8, 0, 0, 0))
    assert summary["currentBalance"] == 1000
    assert summary["bonusCap"] == 500
    assert summary["daysUntilRefill"] == 3
    assert summary["refillDate"] == "2025-05-10T12:00:00Z"


def test_list_transactions_paginates(shopper):
    wallet = wallet_service.require_wallet(shopper.id)
    for i in range(4):
        wallet_service.debit(wallet, 10, description=f"Order {i}")
    db.session.commit()

    items, total = wallet_service.list_transactions(shopper.id, page=1, limit=3)
    assert total == 5
    assert len(items) == 3
    assert items[0].description == "Order 3"
