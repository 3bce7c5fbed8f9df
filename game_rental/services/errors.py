from __future__ import annotations

from typing import Any


class RentalAppError(Exception):
    status_code = 500
    default_detail = "Request failed."

    def __init__(self, detail: Any = None):
        self.detail = detail if detail is not None else self.default_detail
        super().__init__(str(self.detail))


class ValidationError(RentalAppError):
    status_code = 400
    default_detail = "Invalid request."


class ConflictError(RentalAppError):
    status_code = 409
    default_detail = "Resource already exists."


class NotFoundError(RentalAppError):
    status_code = 404
    default_detail = "Resource not found."


class PreconditionError(RentalAppError):
    status_code = 400
    default_detail = "Operation not allowed in the current state."


class StoreError(RentalAppError):
    status_code = 500
    default_detail = "Store operation failed."


class NotAvailableError(PreconditionError):
    default_detail = "Customer, game or stock not available."


class AlreadyReturnedError(PreconditionError):
    default_detail = "Rental already returned."


class StillOpenError(PreconditionError):
    default_detail = "Rental has not been returned yet."


class UnknownCategoryError(PreconditionError):
    default_detail = "Category does not exist."


class CpfInUseError(ConflictError):
    # the customers API reports cpf collisions as a plain client error
    status_code = 400
    default_detail = "CPF already registered to another customer."


class RentalNotFoundError(NotFoundError):
    default_detail = "Rental not found."


class CustomerNotFoundError(NotFoundError):
    default_detail = "Customer not found."
