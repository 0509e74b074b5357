# Overview: Service-layer operations for pickup slots and their capacity; encapsulates business logic and database work.

"""
Pickup Slot Capacity Service

A slot is (pickup location, calendar day, time-of-day bucket) with a
finite capacity counted in reserved units.

PROVISIONING POLICY:
- Slots are created by an explicit, idempotent upsert (provision_slot).
- The reservation path provisions a missing slot with the configured
  DEFAULT_SLOT_CAPACITY; operators can pre-provision days ahead with
  `flask slots provision` and a different capacity.
- An existing slot's capacity is never changed by provisioning.

INVARIANT: 0 <= reserved_count <= capacity
"""

from __future__ import annotations

from datetime import date, timedelta

from flask import current_app

from ..extensions import db
from ..exceptions import NotFoundError, SlotCapacityExceededError, ValidationError
from ..models import PickupLocation, PickupSlot
from ..models.catalog import SLOT_IDS, SLOT_LABELS
from .concurrency import lock_for_update


def normalize_slot(value) -> str:
    """
    Map a slot id or human label to a slot id.

    Accepts "morning" / "afternoon" / "evening" in any case, and labels
    such as "Morning (8 AM - 12 PM)" that name exactly one bucket.
    Anything else is rejected rather than guessed.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("pickupTimeSlot is required")

    low = value.strip().lower()
    if low in SLOT_IDS:
        return low

    matches = [slot for slot in SLOT_IDS if slot in low]
    if len(matches) != 1:
        raise ValidationError(
            f"Unrecognized pickupTimeSlot {value!r}; expected one of: {', '.join(SLOT_IDS)}"
        )
    return matches[0]


def slot_label(slot: str) -> str:
    return SLOT_LABELS[slot]


def default_capacity() -> int:
    return int(current_app.config.get("DEFAULT_SLOT_CAPACITY", 15))


def require_location(location_id: int) -> PickupLocation:
    location = db.session.query(PickupLocation).filter_by(id=location_id).first()
    if not location or not location.is_active:
        raise NotFoundError("Pickup location not found")
    return location


def get_slot(location_id: int, day: date, slot: str, *, for_update: bool = False) -> PickupSlot | None:
    query = db.session.query(PickupSlot).filter_by(
        pickup_location_id=location_id,
        date=day,
        slot=slot,
    )
    if for_update:
        query = lock_for_update(query)
    return query.first()


def provision_slot(
    location_id: int,
    day: date,
    slot: str,
    *,
    capacity: int | None = None,
    for_update: bool = False,
) -> PickupSlot:
    """
    Return the slot for (location, day, slot), creating it if missing.

    Safe to call repeatedly. Two concurrent first-time inserts collide on
    the unique key; the loser's IntegrityError is retried by the caller's
    run_with_retry and then finds the winner's row. Does not commit.
    """
    existing = get_slot(location_id, day, slot, for_update=for_update)
    if existing:
        return existing

    if capacity is None:
        capacity = default_capacity()
    if capacity < 0:
        raise ValidationError("capacity must be >= 0")

    created = PickupSlot(
        pickup_location_id=location_id,
        date=day,
        slot=slot,
        label=slot_label(slot),
        capacity=capacity,
        reserved_count=0,
    )
    db.session.add(created)
    db.session.flush()
    return created


def provision_days(
    *,
    start: date,
    days: int,
    capacity: int | None = None,
    location_id: int | None = None,
) -> int:
    """
    Pre-provision every slot bucket for `days` days from `start` across
    active locations (or one location). Commits. Returns slots created.
    """
    query = db.session.query(PickupLocation).filter(PickupLocation.is_active.is_(True))
    if location_id is not None:
        query = query.filter(PickupLocation.id == location_id)
    locations = query.all()

    created = 0
    for location in locations:
        for offset in range(days):
            day = start + timedelta(days=offset)
            for slot in SLOT_IDS:
                if get_slot(location.id, day, slot) is None:
                    provision_slot(location.id, day, slot, capacity=capacity)
                    created += 1

    db.session.commit()
    return created


# =============================================================================
# CAPACITY COUNTER
# =============================================================================

def reserve_capacity(slot: PickupSlot, quantity: int) -> None:
    """Count `quantity` units against the slot. Does not commit."""
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    if slot.reserved_count + quantity > slot.capacity:
        raise SlotCapacityExceededError()
    slot.reserved_count += quantity


def release_capacity(slot: PickupSlot, quantity: int) -> None:
    """Give `quantity` units back to the slot. Does not commit."""
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    if slot.reserved_count < quantity:
        raise ValueError(
            f"Slot {slot.id} would go negative: reserved {slot.reserved_count}, releasing {quantity}"
        )
    slot.reserved_count -= quantity


# =============================================================================
# READ SIDE
# =============================================================================

def list_locations() -> list[dict]:
    """
    Active locations with both slot shapes: the legacy display-only
    `timeSlots` list and the capacity-managed `slots`.
    """
    locations = (
        db.session.query(PickupLocation)
        .filter(PickupLocation.is_active.is_(True))
        .order_by(PickupLocation.id.asc())
        .all()
    )

    result = []
    for location in locations:
        data = location.to_dict()
        slots = sorted(location.slots, key=lambda s: (s.date, SLOT_IDS.index(s.slot)))
        data["slots"] = [s.to_dict() for s in slots]
        result.append(data)
    return result


def list_slots(location_id: int, day: date) -> list[PickupSlot]:
    slots = db.session.query(PickupSlot).filter_by(pickup_location_id=location_id, date=day).all()
    return sorted(slots, key=lambda s: SLOT_IDS.index(s.slot))
