from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    ForeignKey,
    Numeric,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockres.app.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))
    category: Mapped[str | None] = mapped_column(String(128))
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    # stock disponible (non réservé)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    reservations: Mapped[list["Reservation"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_product_quantity_nonneg"),
        CheckConstraint("price >= 0", name="ck_product_price_nonneg"),
    )


class Reservation(Base):
    __tablename__ = "reservations"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_sku: Mapped[str] = mapped_column(
        ForeignKey("products.sku", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    reserved_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    sales_person: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    vat: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    product: Mapped[Product] = relationship(back_populates="reservations")

    @property
    def product_name(self) -> str | None:
        return self.product.name if self.product else None

    @property
    def product_price(self) -> Decimal | None:
        return self.product.price if self.product else None

    __table_args__ = (
        CheckConstraint("reserved_quantity > 0", name="ck_reservation_qty_pos"),
        CheckConstraint("discount >= 0", name="ck_reservation_discount_nonneg"),
        CheckConstraint("vat >= 0", name="ck_reservation_vat_nonneg"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_reservation_status",
        ),
        Index("ix_reservations_created_at", "created_at"),
    )
