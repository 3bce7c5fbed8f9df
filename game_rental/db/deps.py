from collections.abc import Generator

from fastapi import Request


def get_rental_db(request: Request) -> Generator:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
