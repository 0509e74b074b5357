from __future__ import annotations

from ..extensions import db
from grosave.time_utils import to_utc_z, to_iso_date


ORDER_STATUS_CONFIRMED = "confirmed"
ORDER_STATUS_READY = "ready"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"

OPEN_ORDER_STATUSES = (ORDER_STATUS_CONFIRMED, ORDER_STATUS_READY)
CLOSED_ORDER_STATUSES = (ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED)

EVENT_RESERVED = "reserved"
EVENT_READY = "ready"
EVENT_SCANNED = "scanned"
EVENT_COMPLETED = "completed"
EVENT_CANCELLED = "cancelled"


class Order(db.Model):
    """
    Reservation of a quantity of one product, paid in GroCoins and
    redeemable at one pickup slot.

    LIFECYCLE:
    confirmed -> ready -> completed
    confirmed/ready -> cancelled (refund path)
    scanned_at is a timestamp only; scanning does not change status.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("user_id", "idempotency_key", name="uq_orders_user_idempotency_key"),
        db.Index("ix_orders_user_status", "user_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    coins_spent = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_CONFIRMED, index=True)

    pickup_location_id = db.Column(db.Integer, db.ForeignKey("pickup_locations.id"), nullable=False, index=True)
    pickup_slot_id = db.Column(db.Integer, db.ForeignKey("pickup_slots.id"), nullable=True, index=True)
    pickup_time_slot = db.Column(db.String(64), nullable=False)  # human label, denormalized
    pickup_date = db.Column(db.Date, nullable=False)

    verification_code = db.Column(db.String(32), nullable=False)
    idempotency_key = db.Column(db.String(128), nullable=True)

    reserved_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    scanned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    product = db.relationship("Product", backref=db.backref("orders", lazy=True))
    pickup_location = db.relationship("PickupLocation", backref=db.backref("orders", lazy=True))
    pickup_slot = db.relationship("PickupSlot", backref=db.backref("orders", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "userId": self.user_id,
            "productId": self.product_id,
            "product": self.product.to_summary_dict() if self.product else None,
            "quantity": self.quantity,
            "coinsSpent": self.coins_spent,
            "status": self.status,
            "pickupLocationId": self.pickup_location_id,
            "pickupLocation": self.pickup_location.to_summary_dict() if self.pickup_location else None,
            "pickupSlotId": self.pickup_slot_id,
            "pickupTimeSlot": self.pickup_time_slot,
            "pickupDate": to_iso_date(self.pickup_date),
            "verificationCode": self.verification_code,
            "reservedAt": to_utc_z(self.reserved_at),
            "scannedAt": to_utc_z(self.scanned_at),
            "completedAt": to_utc_z(self.completed_at),
            "cancelledAt": to_utc_z(self.cancelled_at),
        }


class OrderEvent(db.Model):
    """
    Append-only audit trail of order lifecycle transitions.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "order_events"
    __table_args__ = (
        db.Index("ix_order_events_order_created", "order_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)
    meta = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("events", lazy=True, order_by="OrderEvent.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "type": self.type,
            "meta": self.meta,
            "createdAt": to_utc_z(self.created_at),
        }
