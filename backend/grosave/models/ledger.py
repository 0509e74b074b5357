from __future__ import annotations

from ..extensions import db
from grosave.time_utils import to_utc_z


TXN_DEBIT = "debit"
TXN_CREDIT = "credit"
TXN_BONUS = "bonus"
TXN_REFUND = "refund"

# Sign applied to `amount` when replaying the ledger
TXN_SIGNS = {
    TXN_DEBIT: -1,
    TXN_CREDIT: 1,
    TXN_BONUS: 1,
    TXN_REFUND: 1,
}

EARN_AD = "ad"
EARN_SURVEY = "survey"
EARN_REFERRAL = "referral"


class Transaction(db.Model):
    """
    Append-only GroCoin ledger entry.

    TRANSACTION TYPES:
    - debit: coins spent on a reservation
    - credit: monthly allocation
    - bonus: earned coins (ads, surveys, referrals)
    - refund: coins returned on cancellation

    amount is always positive; balance_after is the wallet balance right
    after this entry, captured at write time.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    related_order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    balance_after = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "amount": self.amount,
            "description": self.description,
            "relatedOrderId": self.related_order_id,
            "balanceAfter": self.balance_after,
            "createdAt": to_utc_z(self.created_at),
        }


class EarnEvent(db.Model):
    """Record of a bonus-earning action (ad view, survey, referral)."""
    __tablename__ = "earn_events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    meta = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "amount": self.amount,
            "meta": self.meta,
            "createdAt": to_utc_z(self.created_at),
        }
