import sys
import unittest
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

from sqlalchemy.exc import SQLAlchemyError

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from db.session import build_engine, build_session_factory, init_db
from models.rental_models import Category, Customer, Game, Rental
from services.catalog_service import decrement_stock, increment_stock
from services.errors import (
    AlreadyReturnedError,
    NotAvailableError,
    RentalNotFoundError,
    StillOpenError,
    StoreError,
    ValidationError,
)
from services import rental_service
from services.rental_service import (
    apply_return_updates,
    calc_delay_fee,
    calc_original_price,
    checkout,
    count_open_rentals,
    delete_rental,
    list_rentals,
    return_rental,
)
from services.store import commit_or_rollback, like_prefix


RENT_DAY = date(2026, 3, 2)


class FailingDb:
    def __init__(self):
        self.rollbacks = 0

    def commit(self):
        raise SQLAlchemyError("connection lost")

    def rollback(self):
        self.rollbacks += 1


class DelayFeeTests(unittest.TestCase):
    def test_original_price_is_days_times_daily_price(self):
        self.assertEqual(calc_original_price(3, Decimal("10.00")), Decimal("30.00"))

    def test_on_time_return_has_no_fee(self):
        fee = calc_delay_fee(RENT_DAY, 3, Decimal("30"), RENT_DAY + timedelta(days=3))
        self.assertIsNone(fee)

    def test_early_return_has_no_fee(self):
        fee = calc_delay_fee(RENT_DAY, 3, Decimal("30"), RENT_DAY + timedelta(days=1))
        self.assertIsNone(fee)

    def test_late_return_charges_original_price_per_extra_day(self):
        fee = calc_delay_fee(RENT_DAY, 3, Decimal("30"), RENT_DAY + timedelta(days=5))
        self.assertEqual(fee, Decimal("60"))

    def test_partial_day_rounds_up(self):
        from datetime import datetime

        rented = datetime(2026, 3, 2, 12, 0)
        returned = datetime(2026, 3, 5, 13, 0)
        fee = calc_delay_fee(rented, 3, Decimal("30"), returned)
        self.assertEqual(fee, Decimal("30"))


class StoreHelperTests(unittest.TestCase):
    def test_failed_commit_rolls_back_and_raises_store_error(self):
        db = FailingDb()
        with self.assertRaises(StoreError):
            commit_or_rollback(db)
        self.assertEqual(db.rollbacks, 1)

    def test_like_prefix_escapes_wildcards(self):
        self.assertEqual(like_prefix("50%_off"), "50\\%\\_off%")


class RentalLifecycleTests(unittest.TestCase):
    def setUp(self):
        self.engine = build_engine("sqlite+pysqlite:///:memory:")
        init_db(self.engine)
        self.Session = build_session_factory(self.engine)
        self.db = self.Session()

        category = Category(Name="Strategy")
        self.db.add(category)
        self.db.flush()
        self.game = Game(
            Name="Monopoly",
            Image="http://img.example/monopoly.png",
            StockTotal=3,
            CategoryID=category.CategoryID,
            PricePerDay=Decimal("10.00"),
        )
        self.empty_game = Game(
            Name="Chess",
            Image="http://img.example/chess.png",
            StockTotal=0,
            CategoryID=category.CategoryID,
            PricePerDay=Decimal("5.00"),
        )
        self.customer = Customer(Name="Ana", Phone="21999998888", Cpf="12345678901", Birthday=date(1990, 5, 1))
        self.other_customer = Customer(Name="Bruno", Phone="2133334444", Cpf="10987654321", Birthday=date(1985, 1, 9))
        self.db.add_all([self.game, self.empty_game, self.customer, self.other_customer])
        self.db.commit()

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def _stock(self, game_id):
        with self.Session() as fresh:
            return fresh.get(Game, game_id).StockTotal

    def _rental(self, rental_id):
        with self.Session() as fresh:
            return fresh.get(Rental, rental_id)

    def _rental_count(self):
        with self.Session() as fresh:
            return len(list_rentals(fresh))

    def test_checkout_creates_open_rental_and_takes_one_unit(self):
        rental = checkout(self.db, self.customer.CustomerID, self.game.GameID, 3, today=RENT_DAY)

        stored = self._rental(rental.RentalID)
        self.assertEqual(stored.RentDate, RENT_DAY)
        self.assertEqual(stored.DaysRented, 3)
        self.assertIsNone(stored.ReturnDate)
        self.assertIsNone(stored.DelayFee)
        self.assertEqual(stored.OriginalPrice, Decimal("30.00"))
        self.assertEqual(self._stock(self.game.GameID), 2)

    def test_checkout_without_stock_changes_nothing(self):
        with self.assertRaises(NotAvailableError):
            checkout(self.db, self.customer.CustomerID, self.empty_game.GameID, 2, today=RENT_DAY)
        self.assertEqual(self._stock(self.empty_game.GameID), 0)
        self.assertEqual(self._rental_count(), 0)

    def test_checkout_for_unknown_customer_changes_nothing(self):
        with self.assertRaises(NotAvailableError):
            checkout(self.db, 9999, self.game.GameID, 2, today=RENT_DAY)
        self.assertEqual(self._stock(self.game.GameID), 3)
        self.assertEqual(self._rental_count(), 0)

    def test_checkout_for_unknown_game_is_not_available(self):
        with self.assertRaises(NotAvailableError):
            checkout(self.db, self.customer.CustomerID, 9999, 2, today=RENT_DAY)

    def test_checkout_rejects_zero_days(self):
        with self.assertRaises(ValidationError):
            checkout(self.db, self.customer.CustomerID, self.game.GameID, 0, today=RENT_DAY)
        self.assertEqual(self._stock(self.game.GameID), 3)

    def test_late_return_sets_fee_and_restores_stock(self):
        rental = checkout(self.db, self.customer.CustomerID, self.game.GameID, 3, today=RENT_DAY)
        return_rental(self.db, rental.RentalID, today=RENT_DAY + timedelta(days=5))

        stored = self._rental(rental.RentalID)
        self.assertEqual(stored.ReturnDate, RENT_DAY + timedelta(days=5))
        self.assertEqual(stored.DelayFee, Decimal("60.00"))
        self.assertEqual(self._stock(self.game.GameID), 3)

    def test_on_time_return_keeps_fee_null(self):
        rental = checkout(self.db, self.customer.CustomerID, self.game.GameID, 3, today=RENT_DAY)
        return_rental(self.db, rental.RentalID, today=RENT_DAY + timedelta(days=3))

        stored = self._rental(rental.RentalID)
        self.assertIsNone(stored.DelayFee)
        self.assertEqual(stored.ReturnDate, RENT_DAY + timedelta(days=3))

    def test_second_return_fails_and_leaves_state_alone(self):
        rental = checkout(self.db, self.customer.CustomerID, self.game.GameID, 3, today=RENT_DAY)
        return_rental(self.db, rental.RentalID, today=RENT_DAY + timedelta(days=5))

        with self.assertRaises(AlreadyReturnedError):
            return_rental(self.db, rental.RentalID, today=RENT_DAY + timedelta(days=9))

        stored = self._rental(rental.RentalID)
        self.assertEqual(stored.ReturnDate, RENT_DAY + timedelta(days=5))
        self.assertEqual(stored.DelayFee, Decimal("60.00"))
        self.assertEqual(self._stock(self.game.GameID), 3)

    def test_return_unknown_rental(self):
        with self.assertRaises(RentalNotFoundError):
            return_rental(self.db, 4242)

    def test_open_rental_cannot_be_deleted(self):
        rental = checkout(self.db, self.customer.CustomerID, self.game.GameID, 1, today=RENT_DAY)
        with self.assertRaises(StillOpenError):
            delete_rental(self.db, rental.RentalID)
        self.assertIsNotNone(self._rental(rental.RentalID))

    def test_closed_rental_is_deleted_without_touching_stock(self):
        rental = checkout(self.db, self.customer.CustomerID, self.game.GameID, 1, today=RENT_DAY)
        return_rental(self.db, rental.RentalID, today=RENT_DAY)
        delete_rental(self.db, rental.RentalID)

        self.assertIsNone(self._rental(rental.RentalID))
        self.assertEqual(self._stock(self.game.GameID), 3)

    def test_delete_unknown_rental(self):
        with self.assertRaises(RentalNotFoundError):
            delete_rental(self.db, 4242)

    def test_stock_tracks_open_rentals_through_interleaved_operations(self):
        game_id = self.game.GameID
        open_ids = []
        steps = ["out", "out", "in", "out", "out", "in", "in", "out", "in", "in"]
        for step in steps:
            if step == "out":
                open_ids.append(checkout(self.db, self.customer.CustomerID, game_id, 2, today=RENT_DAY).RentalID)
            else:
                return_rental(self.db, open_ids.pop(0), today=RENT_DAY + timedelta(days=1))
            with self.Session() as fresh:
                self.assertEqual(fresh.get(Game, game_id).StockTotal, 3 - count_open_rentals(fresh, game_id))
        self.assertEqual(self._stock(game_id), 3)

    def test_checkout_stops_when_stock_is_exhausted(self):
        for _ in range(3):
            checkout(self.db, self.customer.CustomerID, self.game.GameID, 1, today=RENT_DAY)
        with self.assertRaises(NotAvailableError):
            checkout(self.db, self.customer.CustomerID, self.game.GameID, 1, today=RENT_DAY)
        self.assertEqual(self._stock(self.game.GameID), 0)
        self.assertEqual(self._rental_count(), 3)

    def test_decrement_refuses_to_go_below_zero(self):
        self.assertFalse(decrement_stock(self.db, self.empty_game.GameID))
        self.assertTrue(increment_stock(self.db, self.empty_game.GameID))
        self.assertTrue(decrement_stock(self.db, self.empty_game.GameID))
        self.db.commit()
        self.assertEqual(self._stock(self.empty_game.GameID), 0)

    def test_list_rentals_prefers_customer_filter(self):
        first = checkout(self.db, self.customer.CustomerID, self.game.GameID, 1, today=RENT_DAY)
        second = checkout(self.db, self.other_customer.CustomerID, self.game.GameID, 1, today=RENT_DAY)

        by_customer = list_rentals(self.db, customer_id=self.other_customer.CustomerID, game_id=self.game.GameID)
        self.assertEqual([rental.RentalID for rental in by_customer], [second.RentalID])

        by_game = list_rentals(self.db, game_id=self.game.GameID)
        self.assertEqual([rental.RentalID for rental in by_game], [first.RentalID, second.RentalID])

    def test_stale_stock_read_loses_the_last_unit_without_side_effects(self):
        with self.Session() as setup:
            setup.get(Game, self.game.GameID).StockTotal = 1
            setup.commit()

        # session A saw one unit left before session B took it
        with self.Session() as reader:
            seen = reader.get(Game, self.game.GameID)
            stale = SimpleNamespace(GameID=seen.GameID, StockTotal=seen.StockTotal, PricePerDay=seen.PricePerDay)

        with self.Session() as other:
            checkout(other, self.other_customer.CustomerID, self.game.GameID, 1, today=RENT_DAY)

        with mock.patch.object(rental_service, "find_game", lambda db, game_id: stale):
            with self.assertRaises(NotAvailableError):
                checkout(self.db, self.customer.CustomerID, self.game.GameID, 1, today=RENT_DAY)

        self.assertEqual(self._stock(self.game.GameID), 0)
        self.assertEqual(self._rental_count(), 1)

    def test_concurrent_second_return_is_refused(self):
        rental_id = checkout(self.db, self.customer.CustomerID, self.game.GameID, 3, today=RENT_DAY).RentalID

        # session A loaded the open rental before session B returned it
        stale_session = self.Session()
        try:
            stale = stale_session.get(Rental, rental_id)
            self.assertIsNone(stale.ReturnDate)

            with self.Session() as other:
                return_rental(other, rental_id, today=RENT_DAY + timedelta(days=5))

            with self.assertRaises(AlreadyReturnedError):
                apply_return_updates(stale_session, stale, RENT_DAY + timedelta(days=9))
        finally:
            stale_session.close()

        stored = self._rental(rental_id)
        self.assertEqual(stored.ReturnDate, RENT_DAY + timedelta(days=5))
        self.assertEqual(stored.DelayFee, Decimal("60.00"))
        self.assertEqual(self._stock(self.game.GameID), 3)


if __name__ == "__main__":
    unittest.main()
