import logging
from typing import Any

import uvicorn
from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.deps import get_rental_db
from db.session import build_engine, build_session_factory, init_db
from schemas.catalog import CategoryCreate, GameCreate
from schemas.customers import CustomerCreate, CustomerUpdate
from schemas.rentals import CreateRentalDto
from services.catalog_service import (
    create_category,
    create_game,
    list_categories,
    list_games,
    serialize_category,
    serialize_game,
)
from services.customer_service import (
    create_customer,
    find_customer,
    list_customers,
    serialize_customer,
    update_customer,
)
from services.errors import RentalAppError, StoreError
from services.rental_service import (
    checkout,
    delete_rental,
    get_rental,
    list_rentals,
    return_rental,
    serialize_rental,
)
from settings import Settings

API_LOGGER = logging.getLogger("game_rental.api")

router = APIRouter()


def _validation_messages(exc: ValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "body"
        messages.append(f"{field}: {error.get('msg')}")
    return messages


@router.get("/healthz")
def healthcheck():
    return {"status": "ok"}


@router.get("/healthz/db")
def healthcheck_db(db: Session = Depends(get_rental_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok"}
    except SQLAlchemyError as exc:
        API_LOGGER.exception("Database health check failed")
        raise HTTPException(status_code=503, detail="db_unavailable") from exc


# categories

@router.get("/categories")
def get_categories(db: Session = Depends(get_rental_db)):
    return [serialize_category(category) for category in list_categories(db)]


@router.post("/categories", status_code=201)
def post_category(payload: Any = Body(None), db: Session = Depends(get_rental_db)):
    try:
        parsed = CategoryCreate.model_validate(payload if payload is not None else {})
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_messages(exc)[0])

    category = create_category(db, parsed.name)
    return {"id": category.CategoryID}


# games

@router.get("/games")
def get_games(name: str | None = Query(None), db: Session = Depends(get_rental_db)):
    return [serialize_game(game) for game in list_games(db, name_prefix=name)]


@router.post("/games", status_code=201)
def post_game(payload: Any = Body(None), db: Session = Depends(get_rental_db)):
    try:
        parsed = GameCreate.model_validate(payload if payload is not None else {})
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=_validation_messages(exc))

    game = create_game(
        db,
        name=parsed.name,
        image=parsed.image,
        stock_total=parsed.stockTotal,
        category_id=parsed.categoryId,
        price_per_day=parsed.pricePerDay,
    )
    return {"id": game.GameID}


# customers

@router.get("/customers")
def get_customers(cpf: str | None = Query(None), db: Session = Depends(get_rental_db)):
    return [serialize_customer(customer) for customer in list_customers(db, cpf_prefix=cpf)]


@router.get("/customers/{customer_id}")
def get_customer(customer_id: int, db: Session = Depends(get_rental_db)):
    customer = find_customer(db, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return serialize_customer(customer)


@router.post("/customers", status_code=201)
def post_customer(payload: Any = Body(None), db: Session = Depends(get_rental_db)):
    try:
        parsed = CustomerCreate.model_validate(payload if payload is not None else {})
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_messages(exc))

    customer = create_customer(
        db,
        name=parsed.name,
        phone=parsed.phone,
        cpf=parsed.cpf,
        birthday=parsed.birthday,
    )
    return {"id": customer.CustomerID}


@router.put("/customers/{customer_id}")
def put_customer(customer_id: int, payload: Any = Body(None), db: Session = Depends(get_rental_db)):
    try:
        parsed = CustomerUpdate.model_validate(payload if payload is not None else {})
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_messages(exc))

    customer = update_customer(db, customer_id, parsed.model_dump(exclude_unset=True, exclude_none=True))
    return serialize_customer(customer)


# rentals

@router.get("/rentals")
def get_rentals(
    customer_id: int | None = Query(None, alias="customerId"),
    game_id: int | None = Query(None, alias="gameId"),
    db: Session = Depends(get_rental_db),
):
    rentals = list_rentals(db, customer_id=customer_id, game_id=game_id)
    return [serialize_rental(rental) for rental in rentals]


@router.get("/rentals/{rental_id}")
def get_rental_item(rental_id: int, db: Session = Depends(get_rental_db)):
    return serialize_rental(get_rental(db, rental_id))


@router.post("/rentals", status_code=201)
def post_rental(payload: Any = Body(None), db: Session = Depends(get_rental_db)):
    try:
        parsed = CreateRentalDto.model_validate(payload if payload is not None else {})
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_messages(exc)[0])

    rental = checkout(db, parsed.customerId, parsed.gameId, parsed.daysRented)
    return {"id": rental.RentalID}


@router.post("/rentals/{rental_id}/return")
def post_rental_return(rental_id: int, db: Session = Depends(get_rental_db)):
    rental = return_rental(db, rental_id)
    return serialize_rental(get_rental(db, rental.RentalID))


@router.delete("/rentals/{rental_id}")
def remove_rental(rental_id: int, db: Session = Depends(get_rental_db)):
    delete_rental(db, rental_id)
    return {"message": "Rental deleted"}


async def _handle_domain_error(request: Request, exc: RentalAppError):
    if isinstance(exc, StoreError):
        return Response(status_code=500)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def _handle_store_failure(request: Request, exc: SQLAlchemyError):
    API_LOGGER.exception("Store failure method=%s path=%s", request.method, request.url.path)
    return Response(status_code=500)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()

    engine = build_engine(settings.db_url)
    if settings.create_schema:
        init_db(engine)

    app = FastAPI(title="Game Rental API")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    allow_credentials = "*" not in settings.cors_allow_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RentalAppError, _handle_domain_error)
    app.add_exception_handler(SQLAlchemyError, _handle_store_failure)
    app.include_router(router)
    return app


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    API_LOGGER.info("Listening on port %s", settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
