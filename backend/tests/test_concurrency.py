# Overview: Threaded reservation tests against a file-backed SQLite database.

"""
Concurrency tests for the reservation transaction.

Each worker gets its own app context (and therefore its own session), so
the threads really do race on the database. Run alone with:
    python -m pytest backend/tests/test_concurrency.py
"""
import os
import tempfile
import threading
import unittest
from datetime import timedelta

from grosave import create_app
from grosave.extensions import db
from grosave.exceptions import GroSaveError
from grosave.models import User, Product, PickupLocation, PickupSlot, Order, Wallet, Transaction
from grosave.services import order_service, session_service, wallet_service
from grosave.time_utils import utcnow


class ReservationConcurrencyTests(unittest.TestCase):
    WORKERS = 8

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "MONTHLY_COIN_ALLOCATION": 1000,
            "DEFAULT_SLOT_CAPACITY": 15,
            "REQUIRE_IDEMPOTENCY_KEY": False,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            self.user_ids = []
            for i in range(self.WORKERS):
                user = User(phone=f"90000000{i:02d}", is_verified=True)
                db.session.add(user)
                db.session.flush()
                wallet_service.create_wallet(user.id)
                self.user_ids.append(user.id)

            location = PickupLocation(name="Concurrency Hub", address="1 Test Road", is_active=True)
            db.session.add(location)
            db.session.commit()
            self.location_id = location.id
            self.pickup_date = (utcnow() + timedelta(days=1)).date().isoformat()

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _add_product(self, units: int, price: int = 50) -> int:
        with self.app.app_context():
            product = Product(
                name="Race Milk",
                category="Dairy",
                current_price=price,
                original_price=200,
                units_available=units,
                expiry_date=utcnow() + timedelta(days=3),
                is_active=True,
            )
            db.session.add(product)
            db.session.commit()
            return product.id

    def _run(self, targets):
        """Start one thread per (callable, args) and collect outcomes."""
        results = []
        lock = threading.Lock()

        def worker(func, args):
            with self.app.app_context():
                try:
                    func(*args)
                    with lock:
                        results.append("ok")
                except GroSaveError as exc:
                    with lock:
                        results.append(type(exc).__name__)
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(func, args)) for func, args in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        unexpected = [r for r in results if not isinstance(r, str)]
        self.assertEqual(unexpected, [])
        return results

    def _reserve(self, user_id, product_id, quantity, key=None):
        order_service.create_reservation(
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            pickup_location_id=self.location_id,
            pickup_date=self.pickup_date,
            pickup_time_slot="evening",
            idempotency_key=key,
        )

    def _assert_ledgers_replay(self):
        for user_id in self.user_ids:
            wallet = db.session.query(Wallet).filter_by(user_id=user_id).one()
            self.assertEqual(wallet_service.replay_balance(user_id), wallet.current_balance)
            self.assertGreaterEqual(wallet.current_balance, 0)

    def test_stock_never_oversold(self):
        product_id = self._add_product(units=10)
        results = self._run([(self._reserve, (uid, product_id, 3)) for uid in self.user_ids])

        self.assertEqual(results.count("ok"), 3)
        self.assertEqual(results.count("InsufficientStockError"), self.WORKERS - 3)

        with self.app.app_context():
            product = db.session.get(Product, product_id)
            self.assertEqual(product.units_available, 1)
            reserved = sum(o.quantity for o in db.session.query(Order).all())
            self.assertEqual(reserved + product.units_available, 10)
            slot = db.session.query(PickupSlot).one()
            self.assertEqual(slot.reserved_count, reserved)
            self._assert_ledgers_replay()

    def test_slot_capacity_never_exceeded(self):
        product_id = self._add_product(units=100)
        with self.app.app_context():
            db.session.add(PickupSlot(
                pickup_location_id=self.location_id,
                date=utcnow().date() + timedelta(days=1),
                slot="evening",
                label="Evening (4 PM - 8 PM)",
                capacity=5,
                reserved_count=0,
            ))
            db.session.commit()

        results = self._run([(self._reserve, (uid, product_id, 1)) for uid in self.user_ids])

        self.assertEqual(results.count("ok"), 5)
        self.assertEqual(results.count("SlotCapacityExceededError"), self.WORKERS - 5)
        with self.app.app_context():
            slot = db.session.query(PickupSlot).one()
            self.assertEqual(slot.reserved_count, 5)
            self.assertEqual(db.session.get(Product, product_id).units_available, 95)
            self._assert_ledgers_replay()

    def test_lazy_slot_created_once(self):
        product_id = self._add_product(units=100)
        results = self._run([(self._reserve, (uid, product_id, 1)) for uid in self.user_ids])

        self.assertEqual(results.count("ok"), self.WORKERS)
        with self.app.app_context():
            slot = db.session.query(PickupSlot).one()
            self.assertEqual(slot.reserved_count, self.WORKERS)

    def test_same_idempotency_key_charges_once(self):
        product_id = self._add_product(units=20)
        user_id = self.user_ids[0]
        results = self._run([(self._reserve, (user_id, product_id, 2, "double-tap")) for _ in range(5)])

        self.assertEqual(results, ["ok"] * 5)
        with self.app.app_context():
            self.assertEqual(db.session.query(Order).count(), 1)
            wallet = db.session.query(Wallet).filter_by(user_id=user_id).one()
            self.assertEqual(wallet.current_balance, 900)
            self.assertEqual(db.session.query(Transaction).filter_by(type="debit").count(), 1)
            self.assertEqual(db.session.get(Product, product_id).units_available, 18)

    def test_http_reservations_never_oversell(self):
        product_id = self._add_product(units=10)
        with self.app.app_context():
            tokens = [session_service.create_session(uid)[1] for uid in self.user_ids]

        statuses = []
        lock = threading.Lock()

        def worker(token):
            client = self.app.test_client()
            response = client.post(
                "/api/orders/reserve",
                json={
                    "productId": product_id,
                    "quantity": 3,
                    "pickupLocationId": self.location_id,
                    "pickupTimeSlot": "evening",
                    "pickupDate": self.pickup_date,
                },
                headers={"Authorization": f"Bearer {token}"},
            )
            with lock:
                statuses.append(response.status_code)

        threads = [threading.Thread(target=worker, args=(token,)) for token in tokens]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(sorted(statuses), [201] * 3 + [400] * (self.WORKERS - 3))
        with self.app.app_context():
            self.assertEqual(db.session.get(Product, product_id).units_available, 1)
            self.assertEqual(db.session.query(PickupSlot).one().reserved_count, 9)
            self._assert_ledgers_replay()

    def test_double_cancel_refunds_once(self):
        product_id = self._add_product(units=10)
        user_id = self.user_ids[0]
        with self.app.app_context():
            self._reserve(user_id, product_id, 2)
            order_id = db.session.query(Order).one().id

        results = self._run([(order_service.cancel_order, (order_id, user_id)) for _ in range(3)])

        self.assertEqual(results.count("ok"), 1)
        self.assertEqual(results.count("NotFoundError"), 2)
        with self.app.app_context():
            wallet = db.session.query(Wallet).filter_by(user_id=user_id).one()
            self.assertEqual(wallet.current_balance, 1000)
            self.assertEqual(wallet.spent, 0)
            self.assertEqual(db.session.get(Product, product_id).units_available, 10)
            self.assertEqual(db.session.query(PickupSlot).one().reserved_count, 0)
            self._assert_ledgers_replay()


if __name__ == "__main__":
    unittest.main()
