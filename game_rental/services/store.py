from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from services.errors import StoreError

STORE_LOGGER = logging.getLogger("game_rental.store")


def commit_or_rollback(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        STORE_LOGGER.exception("Commit failed, transaction rolled back")
        raise StoreError() from exc


def like_prefix(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}%"
