# Overview: Service-layer operations for order reservations and their lifecycle; encapsulates business logic and database work.

"""
Order Lifecycle Service

WHY: A reservation is the only multi-entity state change in the system.
Wallet balance, product stock and slot capacity move together with the
order row and its audit trail, or not at all.

DESIGN PRINCIPLES:
- Every precondition is checked before the first write.
- All writes of one operation share a single database transaction; any
  failure rolls the whole unit back.
- Contended rows (product, wallet, slot, order) are read with
  SELECT ... FOR UPDATE (BEGIN IMMEDIATE on SQLite) and carry version_id
  stamps, so a lost update surfaces as StaleDataError and is retried.
- A client idempotency key makes a retried reservation return the order
  the first attempt created instead of charging twice.

LIFECYCLE:
| From             | Operation       | To                          |
|------------------|-----------------|-----------------------------|
| confirmed        | mark_ready      | ready                       |
| confirmed, ready | mark_scanned    | unchanged, sets scanned_at  |
| confirmed, ready | complete_order  | completed                   |
| confirmed, ready | cancel_order    | cancelled (full refund)     |
"""

from __future__ import annotations

import re
import secrets
import time
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..exceptions import (
    InsufficientBalanceError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..models import Order, OrderEvent, PickupSlot
from ..models.catalog import SLOT_IDS
from ..models.orders import (
    ORDER_STATUS_CONFIRMED,
    ORDER_STATUS_READY,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
    OPEN_ORDER_STATUSES,
    CLOSED_ORDER_STATUSES,
    EVENT_RESERVED,
    EVENT_READY,
    EVENT_SCANNED,
    EVENT_COMPLETED,
    EVENT_CANCELLED,
)
from grosave.time_utils import utcnow, parse_calendar_day
from grosave.validation import coerce_positive_int
from .concurrency import begin_write, lock_for_update, run_with_retry
from . import inventory_service, slot_service, wallet_service, notification_service


ORDER_NUMBER_PREFIX = "GS24"
MAX_IDEMPOTENCY_KEY_LENGTH = 128


@dataclass
class ReservationResult:
    order: Order
    created: bool  # False when an idempotent retry returned an existing order


# =============================================================================
# ORDER NUMBERS
# =============================================================================

def generate_order_number(now_ms: int | None = None) -> str:
    """GS24 + last 8 digits of the epoch-millisecond clock + 3 random digits."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    timestamp = str(now_ms)[-8:].zfill(8)
    random_part = str(secrets.randbelow(1000)).zfill(3)
    return f"{ORDER_NUMBER_PREFIX}{timestamp}{random_part}"


def generate_verification_code(order_number: str) -> str:
    """GS2412345678901 -> 1234-5678-901"""
    digits = order_number.replace(ORDER_NUMBER_PREFIX, "", 1)
    return re.sub(r"^(\d{4})(\d{4})(\d+)$", r"\1-\2-\3", digits)


# =============================================================================
# HELPERS
# =============================================================================

def _append_event(order: Order, event_type: str, meta: dict | None = None) -> OrderEvent:
    event = OrderEvent(order_id=order.id, type=event_type, meta=meta)
    db.session.add(event)
    return event


def _lock_order(order_id: int, user_id: int, *, statuses: tuple | None = None) -> Order | None:
    query = db.session.query(Order).filter_by(id=order_id, user_id=user_id)
    if statuses is not None:
        query = query.filter(Order.status.in_(statuses))
    return lock_for_update(query).first()


def _normalize_idempotency_key(idempotency_key) -> str | None:
    if idempotency_key is None:
        if current_app.config.get("REQUIRE_IDEMPOTENCY_KEY"):
            raise ValidationError("idempotencyKey is required")
        return None
    key = str(idempotency_key).strip()
    if not key:
        raise ValidationError("idempotencyKey cannot be blank")
    if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError(f"idempotencyKey exceeds max length {MAX_IDEMPOTENCY_KEY_LENGTH}")
    return key


# =============================================================================
# RESERVATION
# =============================================================================

def create_reservation(
    *,
    user_id: int,
    product_id: int,
    quantity,
    pickup_location_id: int,
    pickup_date,
    pickup_time_slot: str,
    idempotency_key: str | None = None,
) -> ReservationResult:
    """
    Reserve `quantity` units of a product for pickup at a slot.

    Preconditions (each its own failure, all checked before any write):
    1. Product exists and is active          -> NotFoundError
    2. Enough units in stock                 -> InsufficientStockError
    3. Wallet balance covers price x qty     -> InsufficientBalanceError
    4. Slot for (location, day, bucket) is provisioned on first use
    5. Slot has room for `quantity` units    -> SlotCapacityExceededError

    Effects, in one transaction: wallet debit, stock decrement, slot
    reserved_count increment, Order (confirmed), OrderEvent(reserved),
    Transaction(debit), Notification.
    """
    quantity = coerce_positive_int(quantity, "quantity")
    try:
        day = parse_calendar_day(pickup_date)
    except ValueError:
        raise ValidationError("pickupDate must be a YYYY-MM-DD date")
    slot_id = slot_service.normalize_slot(pickup_time_slot)
    key = _normalize_idempotency_key(idempotency_key)

    def _op():
        begin_write()

        if key is not None:
            existing = db.session.query(Order).filter_by(user_id=user_id, idempotency_key=key).first()
            if existing:
                # nothing written; end the transaction to release the write lock
                db.session.commit()
                return ReservationResult(order=existing, created=False)

        product = inventory_service.require_active_product(product_id, for_update=True)
        if product.units_available < quantity:
            raise InsufficientStockError(requested=quantity, available=product.units_available)

        coins_spent = product.current_price * quantity
        wallet = wallet_service.get_wallet(user_id, for_update=True)
        if not wallet or wallet.current_balance < coins_spent:
            raise InsufficientBalanceError(
                required=coins_spent,
                balance=wallet.current_balance if wallet else 0,
            )

        slot_service.require_location(pickup_location_id)
        slot = slot_service.provision_slot(pickup_location_id, day, slot_id, for_update=True)
        slot_service.reserve_capacity(slot, quantity)

        inventory_service.reserve_stock(product, quantity)

        order_number = generate_order_number()
        label = slot.label if pickup_time_slot.strip().lower() in SLOT_IDS else pickup_time_slot.strip()
        order = Order(
            order_number=order_number,
            user_id=user_id,
            product_id=product.id,
            quantity=quantity,
            coins_spent=coins_spent,
            status=ORDER_STATUS_CONFIRMED,
            pickup_location_id=pickup_location_id,
            pickup_slot_id=slot.id,
            pickup_time_slot=label,
            pickup_date=day,
            verification_code=generate_verification_code(order_number),
            idempotency_key=key,
            reserved_at=utcnow(),
        )
        db.session.add(order)
        db.session.flush()

        wallet_service.debit(
            wallet,
            coins_spent,
            description=f"Order {order.order_number}",
            related_order_id=order.id,
        )
        _append_event(order, EVENT_RESERVED, {"quantity": quantity})
        notification_service.notify(
            user_id=user_id,
            title="Order Confirmed",
            message=f"Order {order.order_number} reserved. Show QR at pickup.",
            order_id=order.id,
        )

        db.session.commit()
        return ReservationResult(order=order, created=True)

    # IntegrityError: lost a race on the slot, order number or idempotency
    # key unique constraint; the retry sees the committed winner.
    result = run_with_retry(_op, retry_on=(IntegrityError,))
    if result.created:
        current_app.logger.info(
            "Order %s reserved: user=%s product=%s qty=%s coins=%s slot=%s",
            result.order.order_number, user_id, product_id, quantity,
            result.order.coins_spent, result.order.pickup_slot_id,
        )
    return result


# =============================================================================
# CANCELLATION
# =============================================================================

def cancel_order(order_id: int, user_id: int, *, now: datetime | None = None) -> Order:
    """
    Cancel an open order and undo its reservation.

    Only the owner's confirmed/ready orders are cancellable; anything else
    (including terminal states) is reported as not found.

    Effects, in one transaction: status cancelled, wallet refund, stock
    restored, slot capacity released, OrderEvent(cancelled),
    Transaction(refund), Notification.
    """
    def _op():
        begin_write()
        ts = now or utcnow()

        order = _lock_order(order_id, user_id, statuses=OPEN_ORDER_STATUSES)
        if not order:
            raise NotFoundError("Not found")

        order.status = ORDER_STATUS_CANCELLED
        order.cancelled_at = ts

        wallet = wallet_service.require_wallet(user_id, for_update=True)
        wallet_service.refund(
            wallet,
            order.coins_spent,
            description=f"Refund: Order {order.order_number}",
            related_order_id=order.id,
        )

        product = inventory_service.get_product(order.product_id, for_update=True)
        inventory_service.release_stock(product, order.quantity, now=ts)

        if order.pickup_slot_id:
            slot = lock_for_update(db.session.query(PickupSlot).filter_by(id=order.pickup_slot_id)).first()
            if slot:
                slot_service.release_capacity(slot, order.quantity)

        _append_event(order, EVENT_CANCELLED)
        notification_service.notify(
            user_id=user_id,
            title="Order Cancelled",
            message=f"Order {order.order_number} cancelled & coins refunded.",
            order_id=order.id,
        )

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s cancelled, refunded %s coins", order.order_number, order.coins_spent)
    return order


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def _transition(order_id: int, user_id: int, *, allowed_from: tuple, apply) -> Order:
    def _op():
        begin_write()
        order = _lock_order(order_id, user_id)
        if not order:
            raise NotFoundError("Not found")
        if order.status not in allowed_from:
            raise InvalidStateError()

        apply(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


def mark_ready(order_id: int, user_id: int) -> Order:
    """confirmed -> ready"""
    def _apply(order: Order):
        order.status = ORDER_STATUS_READY
        _append_event(order, EVENT_READY)
        notification_service.notify(
            user_id=order.user_id,
            title="Order Ready",
            message=f"Order {order.order_number} is ready for pickup.",
            order_id=order.id,
        )

    return _transition(order_id, user_id, allowed_from=(ORDER_STATUS_CONFIRMED,), apply=_apply)


def mark_scanned(order_id: int, user_id: int, *, now: datetime | None = None) -> Order:
    """Record the pickup scan. Status is left unchanged."""
    def _apply(order: Order):
        order.scanned_at = now or utcnow()
        _append_event(order, EVENT_SCANNED)

    return _transition(order_id, user_id, allowed_from=OPEN_ORDER_STATUSES, apply=_apply)


def complete_order(order_id: int, user_id: int, *, now: datetime | None = None) -> Order:
    """confirmed/ready -> completed"""
    def _apply(order: Order):
        order.status = ORDER_STATUS_COMPLETED
        order.completed_at = now or utcnow()
        _append_event(order, EVENT_COMPLETED)
        notification_service.notify(
            user_id=order.user_id,
            title="Order Completed",
            message=f"Thanks! Order {order.order_number} completed.",
            order_id=order.id,
        )

    return _transition(order_id, user_id, allowed_from=OPEN_ORDER_STATUSES, apply=_apply)


# =============================================================================
# READ SIDE
# =============================================================================

def get_order(order_id: int, user_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id, user_id=user_id).first()
    if not order:
        raise NotFoundError("Not found")
    return order


def _list_orders(user_id: int, statuses: tuple) -> list[Order]:
    return (
        db.session.query(Order)
        .filter(Order.user_id == user_id, Order.status.in_(statuses))
        .order_by(Order.reserved_at.desc(), Order.id.desc())
        .all()
    )


def list_active_orders(user_id: int) -> list[Order]:
    return _list_orders(user_id, OPEN_ORDER_STATUSES)


def list_past_orders(user_id: int) -> list[Order]:
    return _list_orders(user_id, CLOSED_ORDER_STATUSES)
