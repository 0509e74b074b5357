from __future__ import annotations

from ..extensions import db
from grosave.time_utils import to_utc_z


INCOME_RANGES = (
    "BELOW_1_5_LPA",
    "BETWEEN_1_5_2_5_LPA",
    "BETWEEN_2_5_3_5_LPA",
    "ABOVE_3_5_LPA",
)


class User(db.Model):
    """
    Shopper identity, keyed by phone number.

    Created the first time a phone number passes OTP verification,
    together with its wallet. Never deleted by the order flows.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    phone = db.Column(db.String(32), nullable=False, unique=True, index=True)

    name = db.Column(db.String(128), nullable=True)
    aadhaar_last4 = db.Column(db.String(4), nullable=True)
    income_range = db.Column(db.String(32), nullable=True)
    school_going_children = db.Column(db.Integer, nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    pincode = db.Column(db.String(16), nullable=True)
    language = db.Column(db.String(16), nullable=True)
    notification_prefs = db.Column(db.JSON, nullable=True)

    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    # Legacy free text kept for the UI ("pending", "approved", ...)
    eligibility_status = db.Column(db.String(32), nullable=False, default="pending")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} phone={self.phone!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "phone": self.phone,
            "name": self.name,
            "isVerified": self.is_verified,
            "eligibilityStatus": self.eligibility_status,
            "incomeRange": self.income_range,
            "schoolGoingChildren": self.school_going_children,
            "address": self.address,
            "city": self.city,
            "pincode": self.pincode,
            "language": self.language,
            "notificationPrefs": self.notification_prefs,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Wallet(db.Model):
    """
    GroCoin balance for one user.

    current_balance = monthly_credit + bonus_earned - spent (+/- refunds),
    and every change is paired with one Transaction row carrying the
    resulting balance. Non-negative balance is enforced at debit time only.
    """
    __tablename__ = "wallets"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_wallets_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    current_balance = db.Column(db.Integer, nullable=False, default=0)
    monthly_credit = db.Column(db.Integer, nullable=False, default=0)
    spent = db.Column(db.Integer, nullable=False, default=0)
    bonus_earned = db.Column(db.Integer, nullable=False, default=0)
    refill_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("wallet", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "currentBalance": self.current_balance,
            "monthlyCredit": self.monthly_credit,
            "spent": self.spent,
            "bonusEarned": self.bonus_earned,
            "refillDate": to_utc_z(self.refill_date),
        }
