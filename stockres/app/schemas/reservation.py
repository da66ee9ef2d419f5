from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stockres.app.core.config import settings
from stockres.app.db.models.core_types import ReservationStatus


class ReservationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_sku: str
    customer_name: str
    reserved_quantity: int
    sales_person: str = ""
    discount: float = 0
    vat: float = 0
    status: ReservationStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # jointure produit (lecture seule)
    product_name: str | None = None
    product_price: float | None = None


class ReservationCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    product_sku: str = Field(min_length=1, max_length=64)
    customer_name: str = Field(min_length=1, max_length=255)
    reserved_quantity: int = Field(gt=0)
    sales_person: str = Field(default="", max_length=255)
    discount: float = Field(default=0, ge=0)
    vat: float = Field(default=0, ge=0)

    @field_validator("sales_person", mode="before")
    @classmethod
    def _none_is_blank(cls, v):
        return "" if v is None else v

    @field_validator("vat", mode="before")
    @classmethod
    def _vat_flag(cls, v):
        # le front envoie parfois un simple flag "TVA incluse"
        if isinstance(v, bool):
            return settings.default_vat_rate if v else 0
        return 0 if v is None else v


class QuantityUpdate(BaseModel):
    reserved_quantity: int = Field(gt=0)


class StatusUpdate(BaseModel):
    status: str = Field(min_length=1)
