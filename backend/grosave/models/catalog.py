from __future__ import annotations

from ..extensions import db
from grosave.time_utils import to_utc_z, to_iso_date


SLOT_MORNING = "morning"
SLOT_AFTERNOON = "afternoon"
SLOT_EVENING = "evening"
SLOT_IDS = (SLOT_MORNING, SLOT_AFTERNOON, SLOT_EVENING)

SLOT_LABELS = {
    SLOT_MORNING: "Morning (8 AM - 12 PM)",
    SLOT_AFTERNOON: "Afternoon (12 PM - 4 PM)",
    SLOT_EVENING: "Evening (4 PM - 7 PM)",
}

# Why a product is hidden from the catalog. Stock-driven visibility is
# tracked apart from manual and expiry deactivation.
DEACTIVATED_SOLD_OUT = "sold_out"
DEACTIVATED_MANUAL = "manual"
DEACTIVATED_EXPIRED = "expired"


class Product(db.Model):
    """
    Near-expiry catalog entry priced in GroCoins.

    INVARIANTS:
    - units_available >= 0
    - is_active is False once units_available reaches 0
      (deactivation_reason = "sold_out")
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("units_available >= 0", name="ck_products_units_nonnegative"),
        db.Index("ix_products_active_expiry", "is_active", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(128), nullable=True)
    category = db.Column(db.String(64), nullable=False, default="Other", index=True)
    description = db.Column(db.Text, nullable=True)
    image = db.Column(db.String(512), nullable=True)
    images = db.Column(db.JSON, nullable=True)

    current_price = db.Column(db.Integer, nullable=False)
    original_price = db.Column(db.Integer, nullable=False)
    discount = db.Column(db.Integer, nullable=True)  # percent, display only

    expiry_status = db.Column(db.String(16), nullable=True)  # fresh, warning, critical
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)
    dynamic_pricing_enabled = db.Column(db.Boolean, nullable=False, default=False)
    drop_to_price_at_hours_before_expiry = db.Column(db.Integer, nullable=True)
    free_at_hours_before_expiry = db.Column(db.Integer, nullable=True)

    units_available = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    deactivation_reason = db.Column(db.String(16), nullable=True)

    nutrition_info = db.Column(db.JSON, nullable=True)
    storage_info = db.Column(db.JSON, nullable=True)
    safety_info = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} units={self.units_available}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "description": self.description,
            "image": self.image,
            "images": self.images or [],
            "currentPrice": self.current_price,
            "originalPrice": self.original_price,
            "discount": self.discount,
            "expiryStatus": self.expiry_status,
            "expiryDate": to_utc_z(self.expiry_date),
            "dynamicPricingEnabled": self.dynamic_pricing_enabled,
            "dropToPriceAtHoursBeforeExpiry": self.drop_to_price_at_hours_before_expiry,
            "freeAtHoursBeforeExpiry": self.free_at_hours_before_expiry,
            "unitsAvailable": self.units_available,
            "isActive": self.is_active,
            "nutritionInfo": self.nutrition_info,
            "storageInfo": self.storage_info or [],
            "safetyInfo": self.safety_info or [],
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_summary_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "image": self.image,
            "currentPrice": self.current_price,
            "originalPrice": self.original_price,
        }


class PickupLocation(db.Model):
    """
    Pickup site.

    time_slots is the legacy, display-only slot list kept for older UI
    builds; reservation capacity lives in PickupSlot rows.
    """
    __tablename__ = "pickup_locations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(128), nullable=True)
    pincode = db.Column(db.String(16), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    time_slots = db.Column(db.JSON, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "pincode": self.pincode,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "isActive": self.is_active,
            "timeSlots": self.time_slots if isinstance(self.time_slots, list) else [],
        }

    def to_summary_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
        }


class PickupSlot(db.Model):
    """
    Capacity-managed pickup window: (location, calendar day, time-of-day).

    INVARIANT: 0 <= reserved_count <= capacity
    """
    __tablename__ = "pickup_slots"
    __table_args__ = (
        db.UniqueConstraint("pickup_location_id", "date", "slot", name="uq_pickup_slots_location_date_slot"),
        db.CheckConstraint("reserved_count >= 0", name="ck_pickup_slots_reserved_nonnegative"),
        db.CheckConstraint("reserved_count <= capacity", name="ck_pickup_slots_within_capacity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pickup_location_id = db.Column(db.Integer, db.ForeignKey("pickup_locations.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    slot = db.Column(db.String(16), nullable=False)  # morning, afternoon, evening
    label = db.Column(db.String(64), nullable=False)
    capacity = db.Column(db.Integer, nullable=False)
    reserved_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    pickup_location = db.relationship("PickupLocation", backref=db.backref("slots", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_iso_date(self.date),
            "slot": self.slot,
            "label": self.label,
            "capacity": self.capacity,
            "reservedCount": self.reserved_count,
            "pickupLocationId": self.pickup_location_id,
        }
