from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    sku: str
    name: str | None = None
    category: str | None = None
    price: float = 0
    quantity: int = 0


class ProductCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    sku: str = Field(min_length=1, max_length=64)
    name: str | None = Field(default=None, max_length=255)
    category: str | None = Field(default=None, max_length=128)
    price: float = Field(default=0, ge=0)
    quantity: int = Field(default=0, ge=0)


class ProductUpdate(BaseModel):
    """Mise à jour partielle : seuls les champs envoyés sont appliqués."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, max_length=255)
    category: str | None = Field(default=None, max_length=128)
    price: float | None = Field(default=None, ge=0)
    quantity: int | None = Field(default=None, ge=0)
