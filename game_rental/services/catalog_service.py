from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from models.rental_models import Category, Game
from services.errors import ConflictError, UnknownCategoryError
from services.store import commit_or_rollback, like_prefix

CATALOG_LOGGER = logging.getLogger("game_rental.catalog")


def serialize_category(category: Category) -> dict:
    return {"id": category.CategoryID, "name": category.Name}


def serialize_game(game: Game) -> dict:
    return {
        "id": game.GameID,
        "name": game.Name,
        "image": game.Image,
        "stockTotal": game.StockTotal,
        "categoryId": game.CategoryID,
        "pricePerDay": game.PricePerDay,
        "categoryName": game.Category.Name if game.Category else None,
    }


def list_categories(db: Session) -> list[Category]:
    return db.execute(select(Category).order_by(Category.CategoryID)).scalars().all()


def category_exists(db: Session, category_id: int) -> bool:
    return db.get(Category, category_id) is not None


def category_name_taken(db: Session, name: str) -> bool:
    stmt = select(Category.CategoryID).where(Category.Name == name)
    return db.execute(stmt).first() is not None


def create_category(db: Session, name: str) -> Category:
    if category_name_taken(db, name):
        CATALOG_LOGGER.warning("Category rejected name=%s reason=name_taken", name)
        raise ConflictError("Category name already exists.")

    category = Category(Name=name)
    db.add(category)
    commit_or_rollback(db)
    CATALOG_LOGGER.info("Category created category_id=%s name=%s", category.CategoryID, name)
    return category


def list_games(db: Session, name_prefix: str | None = None) -> list[Game]:
    stmt = select(Game).options(selectinload(Game.Category)).order_by(Game.GameID)
    if name_prefix:
        stmt = stmt.where(Game.Name.ilike(like_prefix(name_prefix), escape="\\"))
    return db.execute(stmt).scalars().all()


def find_game(db: Session, game_id: int) -> Game | None:
    return db.get(Game, game_id, populate_existing=True)


def game_name_taken(db: Session, name: str) -> bool:
    stmt = select(Game.GameID).where(Game.Name == name)
    return db.execute(stmt).first() is not None


def create_game(
    db: Session,
    name: str,
    image: str,
    stock_total: int,
    category_id: int,
    price_per_day: Decimal,
) -> Game:
    if game_name_taken(db, name):
        CATALOG_LOGGER.warning("Game rejected name=%s reason=name_taken", name)
        raise ConflictError("Game name already exists.")
    if not category_exists(db, category_id):
        CATALOG_LOGGER.warning("Game rejected name=%s reason=unknown_category category_id=%s", name, category_id)
        raise UnknownCategoryError()

    game = Game(
        Name=name,
        Image=image,
        StockTotal=stock_total,
        CategoryID=category_id,
        PricePerDay=price_per_day,
    )
    db.add(game)
    commit_or_rollback(db)
    CATALOG_LOGGER.info("Game created game_id=%s name=%s stock=%s", game.GameID, name, stock_total)
    return game


def decrement_stock(db: Session, game_id: int, by: int = 1) -> bool:
    """Take ``by`` units out of stock inside the caller's transaction.

    The update is conditional on enough stock being left, so two concurrent
    checkouts of the last unit cannot both succeed. Returns False when no row
    was changed (unknown game or not enough stock).
    """
    result = db.execute(
        update(Game)
        .where(Game.GameID == game_id)
        .where(Game.StockTotal >= by)
        .values(StockTotal=Game.StockTotal - by)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def increment_stock(db: Session, game_id: int, by: int = 1) -> bool:
    result = db.execute(
        update(Game)
        .where(Game.GameID == game_id)
        .values(StockTotal=Game.StockTotal + by)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
