from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.rental_models import Customer
from services.errors import CpfInUseError, CustomerNotFoundError
from services.store import commit_or_rollback, like_prefix

CUSTOMER_LOGGER = logging.getLogger("game_rental.customers")

UPDATABLE_FIELDS = {
    "name": "Name",
    "phone": "Phone",
    "cpf": "Cpf",
    "birthday": "Birthday",
}


def serialize_customer(customer: Customer) -> dict:
    return {
        "id": customer.CustomerID,
        "name": customer.Name,
        "phone": customer.Phone,
        "cpf": customer.Cpf,
        "birthday": customer.Birthday,
    }


def list_customers(db: Session, cpf_prefix: str | None = None) -> list[Customer]:
    stmt = select(Customer).order_by(Customer.CustomerID)
    if cpf_prefix:
        stmt = stmt.where(Customer.Cpf.ilike(like_prefix(cpf_prefix), escape="\\"))
    return db.execute(stmt).scalars().all()


def find_customer(db: Session, customer_id: int) -> Customer | None:
    return db.get(Customer, customer_id)


def cpf_taken(db: Session, cpf: str, excluding_id: int | None = None) -> bool:
    stmt = select(Customer.CustomerID).where(Customer.Cpf == cpf)
    if excluding_id is not None:
        stmt = stmt.where(Customer.CustomerID != excluding_id)
    return db.execute(stmt).first() is not None


def create_customer(db: Session, name: str, phone: str, cpf: str, birthday: date) -> Customer:
    if cpf_taken(db, cpf):
        CUSTOMER_LOGGER.warning("Customer rejected reason=cpf_taken")
        raise CpfInUseError()

    customer = Customer(Name=name, Phone=phone, Cpf=cpf, Birthday=birthday)
    db.add(customer)
    commit_or_rollback(db)
    CUSTOMER_LOGGER.info("Customer created customer_id=%s", customer.CustomerID)
    return customer


def update_customer(db: Session, customer_id: int, changes: dict) -> Customer:
    """Apply a partial update. ``changes`` uses the API field names.

    A customer may keep their own cpf; taking another customer's cpf is refused.
    """
    customer = find_customer(db, customer_id)
    if not customer:
        raise CustomerNotFoundError()

    cpf = changes.get("cpf")
    if cpf is not None and cpf_taken(db, cpf, excluding_id=customer_id):
        CUSTOMER_LOGGER.warning("Customer update rejected customer_id=%s reason=cpf_taken", customer_id)
        raise CpfInUseError()

    for key, value in changes.items():
        column = UPDATABLE_FIELDS.get(key)
        if column is None or value is None:
            continue
        setattr(customer, column, value)

    commit_or_rollback(db)
    CUSTOMER_LOGGER.info("Customer updated customer_id=%s fields=%s", customer_id, ",".join(sorted(changes)))
    return customer
