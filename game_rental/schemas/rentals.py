from pydantic import BaseModel, ConfigDict, Field

# keeps originalPrice x late days inside the money columns
MAX_DAYS_RENTED = 3650


class CreateRentalDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    customerId: int
    gameId: int
    daysRented: int = Field(ge=1, le=MAX_DAYS_RENTED)
