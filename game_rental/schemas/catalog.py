from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_PRICE_PER_DAY = Decimal("99999.99")


class CategoryCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class GameCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    image: str = Field(min_length=1)
    stockTotal: int = Field(ge=0)
    categoryId: int = Field(ge=1)
    pricePerDay: Decimal = Field(ge=0, le=MAX_PRICE_PER_DAY, decimal_places=2)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value
