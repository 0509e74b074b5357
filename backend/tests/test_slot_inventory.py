# Overview: Pytest coverage for slot capacity, stock counters, and catalog reads.

from datetime import date, datetime, timedelta

import pytest

from grosave.extensions import db
from grosave.exceptions import InsufficientStockError, SlotCapacityExceededError, ValidationError
from grosave.models import Product, PickupLocation, PickupSlot
from grosave.models.catalog import DEACTIVATED_EXPIRED, DEACTIVATED_SOLD_OUT
from grosave.services import inventory_service, slot_service


class TestNormalizeSlot:
    @pytest.mark.parametrize("value, expected", [
        ("morning", "morning"),
        ("AFTERNOON", "afternoon"),
        ("  evening ", "evening"),
        ("Morning (8 AM - 12 PM)", "morning"),
        ("Afternoon (12 PM - 4 PM)", "afternoon"),
        ("late evening", "evening"),
    ])
    def test_accepted(self, value, expected):
        assert slot_service.normalize_slot(value) == expected

    @pytest.mark.parametrize("value", ["", "   ", "night", "8 AM", "morning/evening", 3, None])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            slot_service.normalize_slot(value)


class TestProvisioning:
    def test_provision_is_idempotent(self, location, pickup_day):
        first = slot_service.provision_slot(location.id, pickup_day, "morning")
        db.session.commit()
        second = slot_service.provision_slot(location.id, pickup_day, "morning", capacity=99)
        db.session.commit()

        assert first.id == second.id
        assert second.capacity == 15
        assert second.label == "Morning (8 AM - 12 PM)"
        assert db.session.query(PickupSlot).count() == 1

    def test_provision_days_covers_every_bucket(self, location):
        start = date(2030, 6, 1)
        created = slot_service.provision_days(start=start, days=2, capacity=5)
        assert created == 6
        # Running again creates nothing new
        assert slot_service.provision_days(start=start, days=3) == 3

        slots = slot_service.list_slots(location.id, start)
        assert [s.slot for s in slots] == ["morning", "afternoon", "evening"]
        assert {s.capacity for s in slots} == {5}

    def test_provision_days_skips_inactive_locations(self, location):
        location.is_active = False
        db.session.commit()
        assert slot_service.provision_days(start=date(2030, 1, 1), days=1) == 0

    def test_negative_capacity_rejected(self, location, pickup_day):
        with pytest.raises(ValidationError):
            slot_service.provision_slot(location.id, pickup_day, "evening", capacity=-1)


class TestCapacityCounter:
    def test_reserve_up_to_capacity(self, location, pickup_day):
        slot = slot_service.provision_slot(location.id, pickup_day, "morning", capacity=3)
        slot_service.reserve_capacity(slot, 3)
        assert slot.reserved_count == 3
        with pytest.raises(SlotCapacityExceededError):
            slot_service.reserve_capacity(slot, 1)
        assert slot.reserved_count == 3

    def test_release_never_goes_negative(self, location, pickup_day):
        slot = slot_service.provision_slot(location.id, pickup_day, "morning")
        slot_service.reserve_capacity(slot, 2)
        slot_service.release_capacity(slot, 2)
        assert slot.reserved_count == 0
        with pytest.raises(ValueError):
            slot_service.release_capacity(slot, 1)


class TestStockCounter:
    def test_reserve_and_release(self, product):
        inventory_service.reserve_stock(product, 20)
        assert product.units_available == 3
        inventory_service.release_stock(product, 5)
        assert product.units_available == 8
        assert product.is_active is True

    def test_reserve_beyond_stock(self, product):
        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.reserve_stock(product, 24)
        assert exc.value.payload == {"requested": 24, "available": 23}
        assert product.units_available == 23

    def test_expired_sold_out_product_stays_hidden(self, product):
        inventory_service.reserve_stock(product, 23)
        assert product.deactivation_reason == DEACTIVATED_SOLD_OUT

        inventory_service.release_stock(product, 1, now=product.expiry_date + timedelta(minutes=1))
        assert product.units_available == 1
        assert product.is_active is False

    def test_deactivate_expired_products(self, product, db_session):
        fresh = Product(name="Rice", category="Staples", current_price=80, original_price=140,
                        units_available=5, expiry_date=datetime(2099, 1, 1))
        db.session.add(fresh)
        db.session.commit()

        count = inventory_service.deactivate_expired_products(now=product.expiry_date + timedelta(hours=1))
        assert count == 1
        db.session.refresh(product)
        assert product.is_active is False
        assert product.deactivation_reason == DEACTIVATED_EXPIRED
        assert db.session.get(Product, fresh.id).is_active is True


class TestPricingPhase:
    def test_phases_follow_expiry_window(self, product):
        expiry = product.expiry_date
        assert inventory_service.pricing_phase(product, expiry - timedelta(hours=48)) == "normal"
        assert inventory_service.pricing_phase(product, expiry - timedelta(hours=12)) == "drop"
        assert inventory_service.pricing_phase(product, expiry - timedelta(hours=2)) == "free"
        assert inventory_service.pricing_phase(product, expiry) == "expired"

    def test_static_pricing_never_drops(self, product):
        product.dynamic_pricing_enabled = False
        expiry = product.expiry_date
        assert inventory_service.pricing_phase(product, expiry - timedelta(hours=2)) == "normal"


class TestCatalogReads:
    @pytest.fixture
    def catalog(self, db_session):
        soon = datetime(2030, 1, 1)
        items = [
            Product(name="Milk", brand="Happy Farms", category="Dairy", current_price=50, original_price=200,
                    units_available=5, expiry_date=soon + timedelta(days=2)),
            Product(name="Yogurt", brand="Happy Farms", category="Dairy", current_price=35, original_price=90,
                    units_available=5, expiry_date=soon + timedelta(days=1)),
            Product(name="Bread", brand="Daily Bake", category="Bakery", current_price=20, original_price=45,
                    units_available=5, expiry_date=soon + timedelta(days=3)),
            Product(name="Old Cheese", brand="Happy Farms", category="Dairy", current_price=10, original_price=90,
                    units_available=0, is_active=False, expiry_date=soon),
        ]
        db.session.add_all(items)
        db.session.commit()
        return items

    def test_list_orders_by_expiry_and_skips_inactive(self, catalog):
        products, total = inventory_service.list_products()
        assert total == 3
        assert [p.name for p in products] == ["Yogurt", "Milk", "Bread"]

    def test_filters(self, catalog):
        assert inventory_service.list_products(category="Bakery")[1] == 1
        assert inventory_service.list_products(category="All")[1] == 3
        names = [p.name for p in inventory_service.list_products(search="happy")[0]]
        assert names == ["Yogurt", "Milk"]

    def test_pagination(self, catalog):
        page2, total = inventory_service.list_products(page=2, limit=2)
        assert total == 3
        assert [p.name for p in page2] == ["Bread"]

    def test_categories(self, catalog):
        categories = inventory_service.list_categories()
        assert categories[0] == {"id": "all", "name": "All", "productCount": -1}
        assert categories[1:] == [
            {"id": "bakery", "name": "Bakery", "productCount": 1},
            {"id": "dairy", "name": "Dairy", "productCount": 2},
        ]


def test_list_locations_includes_both_slot_shapes(location, pickup_day):
    slot_service.provision_slot(location.id, pickup_day, "evening")
    slot_service.provision_slot(location.id, pickup_day, "morning")
    hidden = PickupLocation(name="Closed", address="-", is_active=False)
    db.session.add(hidden)
    db.session.commit()

    locations = slot_service.list_locations()
    assert [loc["name"] for loc in locations] == ["Malleswaram Kirana Hub"]
    assert locations[0]["timeSlots"][0]["id"] == "morning"
    assert [s["slot"] for s in locations[0]["slots"]] == ["morning", "evening"]
    assert locations[0]["slots"][0]["reservedCount"] == 0
