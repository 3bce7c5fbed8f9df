from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from models.rental_models import Game, Rental
from services.catalog_service import decrement_stock, find_game, increment_stock
from services.customer_service import find_customer
from services.errors import (
    AlreadyReturnedError,
    NotAvailableError,
    RentalNotFoundError,
    StillOpenError,
    ValidationError,
)
from services.store import commit_or_rollback

RENTAL_LOGGER = logging.getLogger("game_rental.rentals")

_ONE_DAY = timedelta(days=1)


def calc_original_price(days_rented: int, price_per_day: Decimal) -> Decimal:
    return Decimal(days_rented) * Decimal(price_per_day)


def calc_delay_fee(
    rent_date: date,
    days_rented: int,
    original_price: Decimal,
    returned_on: date,
) -> Decimal | None:
    """Fee owed for returning after the agreed period, or None when on time.

    Each day late costs the full original price of the rental, not the daily
    price of the game.
    """
    elapsed_days = math.ceil((returned_on - rent_date) / _ONE_DAY)
    over_days = elapsed_days - days_rented
    if over_days <= 0:
        return None
    return Decimal(original_price) * over_days


def serialize_rental(rental: Rental) -> dict:
    game = rental.Game
    customer = rental.Customer
    return {
        "id": rental.RentalID,
        "customerId": rental.CustomerID,
        "gameId": rental.GameID,
        "rentDate": rental.RentDate,
        "daysRented": rental.DaysRented,
        "returnDate": rental.ReturnDate,
        "originalPrice": rental.OriginalPrice,
        "delayFee": rental.DelayFee,
        "customer": {
            "id": customer.CustomerID,
            "name": customer.Name,
        } if customer else None,
        "game": {
            "id": game.GameID,
            "name": game.Name,
            "categoryId": game.CategoryID,
            "categoryName": game.Category.Name if game.Category else None,
        } if game else None,
    }


def _rental_query():
    return select(Rental).options(
        selectinload(Rental.Customer),
        selectinload(Rental.Game).selectinload(Game.Category),
    )


def get_rental(db: Session, rental_id: int) -> Rental:
    rental = db.execute(_rental_query().where(Rental.RentalID == rental_id)).scalars().first()
    if not rental:
        raise RentalNotFoundError()
    return rental


def list_rentals(db: Session, customer_id: int | None = None, game_id: int | None = None) -> list[Rental]:
    stmt = _rental_query().order_by(Rental.RentalID)
    # one filter at a time; the customer filter wins when both are given
    if customer_id is not None:
        stmt = stmt.where(Rental.CustomerID == customer_id)
    elif game_id is not None:
        stmt = stmt.where(Rental.GameID == game_id)
    return list(db.execute(stmt).scalars().all())


def checkout(
    db: Session,
    customer_id: int,
    game_id: int,
    days_rented: int,
    today: date | None = None,
) -> Rental:
    if days_rented < 1:
        raise ValidationError("daysRented must be greater than or equal to 1")

    rent_date = today or date.today()
    customer = find_customer(db, customer_id)
    game = find_game(db, game_id)
    if not customer or not game or game.StockTotal < 1:
        RENTAL_LOGGER.warning(
            "Checkout refused customer_id=%s game_id=%s customer_found=%s game_found=%s stock=%s",
            customer_id,
            game_id,
            customer is not None,
            game is not None,
            game.StockTotal if game else None,
        )
        raise NotAvailableError()

    original_price = calc_original_price(days_rented, game.PricePerDay)

    # the stock may have been taken between the read above and this write
    if not decrement_stock(db, game_id):
        db.rollback()
        RENTAL_LOGGER.warning("Checkout refused game_id=%s reason=stock_exhausted", game_id)
        raise NotAvailableError()

    rental = Rental(
        CustomerID=customer_id,
        GameID=game_id,
        RentDate=rent_date,
        DaysRented=days_rented,
        ReturnDate=None,
        OriginalPrice=original_price,
        DelayFee=None,
    )
    db.add(rental)
    commit_or_rollback(db)

    RENTAL_LOGGER.info(
        "Checkout rental_id=%s customer_id=%s game_id=%s days=%s price=%s",
        rental.RentalID,
        customer_id,
        game_id,
        days_rented,
        original_price,
    )
    return rental


def apply_return_updates(db: Session, rental: Rental, returned_on: date) -> Decimal | None:
    delay_fee = calc_delay_fee(rental.RentDate, rental.DaysRented, rental.OriginalPrice, returned_on)

    result = db.execute(
        update(Rental)
        .where(Rental.RentalID == rental.RentalID)
        .where(Rental.ReturnDate.is_(None))
        .values(ReturnDate=returned_on, DelayFee=delay_fee)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise AlreadyReturnedError()

    increment_stock(db, rental.GameID)
    return delay_fee


def return_rental(db: Session, rental_id: int, today: date | None = None) -> Rental:
    returned_on = today or date.today()
    stmt = (
        select(Rental)
        .where(Rental.RentalID == rental_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    rental = db.execute(stmt).scalars().first()
    if not rental:
        raise RentalNotFoundError()
    if rental.ReturnDate is not None:
        RENTAL_LOGGER.warning("Return refused rental_id=%s reason=already_returned", rental_id)
        raise AlreadyReturnedError()

    delay_fee = apply_return_updates(db, rental, returned_on)
    commit_or_rollback(db)
    db.refresh(rental)

    RENTAL_LOGGER.info(
        "Return rental_id=%s game_id=%s delay_fee=%s",
        rental_id,
        rental.GameID,
        delay_fee,
    )
    return rental


def delete_rental(db: Session, rental_id: int) -> None:
    rental = db.get(Rental, rental_id, populate_existing=True)
    if not rental:
        raise RentalNotFoundError()
    if rental.ReturnDate is None:
        RENTAL_LOGGER.warning("Delete refused rental_id=%s reason=still_open", rental_id)
        raise StillOpenError()

    db.delete(rental)
    commit_or_rollback(db)
    RENTAL_LOGGER.info("Rental deleted rental_id=%s", rental_id)


def count_open_rentals(db: Session, game_id: int) -> int:
    stmt = (
        select(func.count())
        .select_from(Rental)
        .where(Rental.GameID == game_id)
        .where(Rental.ReturnDate.is_(None))
    )
    return int(db.execute(stmt).scalar() or 0)
