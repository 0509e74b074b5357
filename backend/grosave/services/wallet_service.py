# Overview: Service-layer operations for the GroCoin wallet ledger; encapsulates business logic and database work.

"""
Wallet Ledger Service

INVARIANTS:
- Every balance mutation is paired with exactly one Transaction row,
  written in the same unit of work, carrying the resulting balance.
  Replaying a user's Transaction rows therefore reproduces the wallet
  balance.
- current_balance >= 0 is enforced at debit time only. Refunds restore
  both current_balance and spent.
- Bonus credits are capped per refill period; a credit over the ceiling
  is clamped to the remaining headroom instead of rejected.

Functions here never commit. Callers own the transaction boundary.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..exceptions import InsufficientBalanceError, NotFoundError
from ..models import Wallet, Transaction, EarnEvent
from ..models.ledger import TXN_DEBIT, TXN_CREDIT, TXN_BONUS, TXN_REFUND, TXN_SIGNS
from ..models.notifications import NOTIFICATION_WALLET
from grosave.time_utils import utcnow, add_one_month, days_until, to_utc_z
from .concurrency import lock_for_update
from . import notification_service


def _monthly_allocation() -> int:
    return int(current_app.config.get("MONTHLY_COIN_ALLOCATION", 4000))


def _bonus_ceiling() -> int:
    return int(current_app.config.get("MAX_BONUS_COINS_PER_MONTH", 500))


def _append_transaction(
    wallet: Wallet,
    *,
    txn_type: str,
    amount: int,
    description: str,
    related_order_id: int | None = None,
) -> Transaction:
    txn = Transaction(
        user_id=wallet.user_id,
        type=txn_type,
        amount=amount,
        description=description,
        related_order_id=related_order_id,
        balance_after=wallet.current_balance,
    )
    db.session.add(txn)
    return txn


# =============================================================================
# WALLET LOOKUP / CREATION
# =============================================================================

def create_wallet(user_id: int, *, now: datetime | None = None) -> Wallet:
    """
    Open a wallet with the monthly allocation and a refill date one month
    out. The allocation is recorded as the wallet's first credit entry.
    """
    now = now or utcnow()
    allocation = _monthly_allocation()

    wallet = Wallet(
        user_id=user_id,
        current_balance=allocation,
        monthly_credit=allocation,
        spent=0,
        bonus_earned=0,
        refill_date=add_one_month(now),
    )
    db.session.add(wallet)
    db.session.flush()

    _append_transaction(
        wallet,
        txn_type=TXN_CREDIT,
        amount=allocation,
        description="Monthly GroCoin allocation",
    )
    return wallet


def get_wallet(user_id: int, *, for_update: bool = False) -> Wallet | None:
    query = db.session.query(Wallet).filter_by(user_id=user_id)
    if for_update:
        query = lock_for_update(query)
    return query.first()


def require_wallet(user_id: int, *, for_update: bool = False) -> Wallet:
    wallet = get_wallet(user_id, for_update=for_update)
    if not wallet:
        raise NotFoundError("Wallet not found")
    return wallet


# =============================================================================
# BALANCE MUTATIONS
# =============================================================================

def debit(
    wallet: Wallet,
    amount: int,
    *,
    description: str,
    related_order_id: int | None = None,
) -> Transaction:
    """Spend coins. Raises InsufficientBalanceError before touching the row."""
    if amount < 0:
        raise ValueError("debit amount must be >= 0")
    if wallet.current_balance < amount:
        raise InsufficientBalanceError(required=amount, balance=wallet.current_balance)

    wallet.current_balance -= amount
    wallet.spent += amount
    return _append_transaction(
        wallet,
        txn_type=TXN_DEBIT,
        amount=amount,
        description=description,
        related_order_id=related_order_id,
    )


def refund(
    wallet: Wallet,
    amount: int,
    *,
    description: str,
    related_order_id: int | None = None,
) -> Transaction:
    """Return coins from a cancelled order; reverses the matching debit."""
    if amount < 0:
        raise ValueError("refund amount must be >= 0")

    wallet.current_balance += amount
    wallet.spent -= amount
    return _append_transaction(
        wallet,
        txn_type=TXN_REFUND,
        amount=amount,
        description=description,
        related_order_id=related_order_id,
    )


def credit_bonus(
    user_id: int,
    amount: int,
    *,
    description: str,
    earn_type: str,
    meta: dict | None = None,
) -> int:
    """
    Credit earned coins, clamped to the remaining bonus headroom.

    Returns the amount actually credited. When the ceiling is already
    reached nothing is written and 0 is returned.
    """
    wallet = require_wallet(user_id, for_update=True)

    headroom = _bonus_ceiling() - wallet.bonus_earned
    if headroom <= 0:
        return 0
    credited = min(amount, headroom)

    wallet.current_balance += credited
    wallet.bonus_earned += credited
    _append_transaction(
        wallet,
        txn_type=TXN_BONUS,
        amount=credited,
        description=description,
    )

    db.session.add(EarnEvent(user_id=user_id, type=earn_type, amount=credited, meta=meta))

    notification_service.notify(
        user_id=user_id,
        kind=NOTIFICATION_WALLET,
        title="Bonus Earned",
        message=f"You earned {credited} GroCoins!",
    )
    return credited


def credit_monthly_allocation(wallet: Wallet, *, now: datetime | None = None) -> Transaction | None:
    """
    Start a new allocation period for a wallet whose refill date has passed.

    The balance is topped up to the monthly allocation (unused coins carry
    over but do not stack past it), the spent and bonus counters reset,
    and the refill date moves forward one month at a time until it is in
    the future. Returns the credit entry, or None when nothing was due or
    no top-up was needed.
    """
    now = now or utcnow()
    if wallet.refill_date is None or wallet.refill_date > now:
        return None

    refill_date = wallet.refill_date
    while refill_date <= now:
        refill_date = add_one_month(refill_date)
    wallet.refill_date = refill_date

    wallet.spent = 0
    wallet.bonus_earned = 0

    top_up = max(0, wallet.monthly_credit - wallet.current_balance)
    if top_up == 0:
        return None

    wallet.current_balance += top_up
    return _append_transaction(
        wallet,
        txn_type=TXN_CREDIT,
        amount=top_up,
        description="Monthly GroCoin allocation",
    )


def refill_due_wallets(*, now: datetime | None = None) -> int:
    """Run the monthly refill for every due wallet. Commits. Returns wallets touched."""
    now = now or utcnow()
    due = lock_for_update(
        db.session.query(Wallet).filter(Wallet.refill_date <= now)
    ).all()

    for wallet in due:
        credit_monthly_allocation(wallet, now=now)

    db.session.commit()
    if due:
        current_app.logger.info("Refilled %d wallet(s)", len(due))
    return len(due)


# =============================================================================
# READ SIDE
# =============================================================================

def balance_summary(user_id: int, *, now: datetime | None = None) -> dict:
    wallet = require_wallet(user_id)
    return {
        "currentBalance": wallet.current_balance,
        "monthlyCredit": wallet.monthly_credit,
        "spent": wallet.spent,
        "bonusEarned": wallet.bonus_earned,
        "bonusCap": _bonus_ceiling(),
        "refillDate": to_utc_z(wallet.refill_date),
        "daysUntilRefill": days_until(wallet.refill_date, now),
    }


def list_transactions(user_id: int, *, page: int = 1, limit: int = 20) -> tuple[list[Transaction], int]:
    query = db.session.query(Transaction).filter_by(user_id=user_id)
    total = query.count()
    items = (
        query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def replay_balance(user_id: int) -> int:
    """Reconstruct a balance from the ledger alone."""
    rows = (
        db.session.query(Transaction.type, func.sum(Transaction.amount))
        .filter_by(user_id=user_id)
        .group_by(Transaction.type)
        .all()
    )
    return sum(TXN_SIGNS[txn_type] * int(total or 0) for txn_type, total in rows)
