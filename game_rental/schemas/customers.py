from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PHONE_PATTERN = r"^[0-9]{10,11}$"
CPF_PATTERN = r"^[0-9]{11}$"


class CustomerCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    phone: str = Field(pattern=PHONE_PATTERN)
    cpf: str = Field(pattern=CPF_PATTERN)
    birthday: date

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class CustomerUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    cpf: Optional[str] = Field(default=None, pattern=CPF_PATTERN)
    birthday: Optional[date] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("must not be blank")
        return value
