from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class Property(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    title: str
    city_name: str | None = None
    address: str | None = None
    monthly_rent: Decimal
    charges: Decimal
    status: str
    created_at: datetime


class PropertyCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    city_name: str | None = Field(None, max_length=255)
    address: str | None = Field(None, max_length=500)
    monthly_rent: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    charges: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
