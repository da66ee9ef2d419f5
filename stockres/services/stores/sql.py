from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from stockres.app.core.errors import ConflictError, InsufficientStockError, NotFoundError
from stockres.app.db.base import Base
from stockres.app.db.models.core_types import ACTIVE_STATUSES
from stockres.app.db.models.models import Product, Reservation, utcnow
from stockres.app.db.seed import SEED_PRODUCTS
from stockres.app.schemas.product import ProductRead
from stockres.app.schemas.reservation import ReservationRead
from stockres.services.stores.base import ReservationStore, UnitOfWork

PRODUCT_FIELDS = ("name", "category", "price", "quantity")


class SqlStore(ReservationStore):
    """
    Backend SQLAlchemy (SQLite en local, Postgres en prod).

    atomic() = une transaction ; les lignes produit / réservation lues
    avec for_update=True sont verrouillées (FOR UPDATE) jusqu'au COMMIT.
    Sur SQLite, l'engine doit passer par use_immediate_transactions()
    (verrou d'écriture dès le BEGIN).
    """

    transactional = True

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- helpers ----------
    def _product(self, sku: str, *, for_update: bool = False) -> Product | None:
        stmt = select(Product).where(Product.sku == sku)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def _reservation(self, reservation_id: int, *, for_update: bool = False) -> Reservation | None:
        stmt = select(Reservation).where(Reservation.id == reservation_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def _require_product(self, sku: str, *, for_update: bool = False) -> Product:
        p = self._product(sku, for_update=for_update)
        if not p:
            raise NotFoundError("product not found")
        return p

    # ---------- PRODUCTS ----------
    def get_product(self, sku: str, *, for_update: bool = False) -> ProductRead | None:
        p = self._product(sku, for_update=for_update)
        return ProductRead.model_validate(p) if p else None

    def list_products(self) -> list[ProductRead]:
        rows = self.db.execute(select(Product).order_by(Product.id.desc())).scalars().all()
        return [ProductRead.model_validate(p) for p in rows]

    def insert_product(self, fields: dict[str, Any]) -> ProductRead:
        sku = fields["sku"]
        if self._product(sku):
            raise ConflictError(f"SKU already exists: {sku}")

        p = Product(**fields)
        self.db.add(p)
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConflictError(f"SKU already exists: {sku}") from exc
        return ProductRead.model_validate(p)

    def update_product(self, sku: str, fields: dict[str, Any]) -> ProductRead:
        p = self._require_product(sku, for_update=True)
        for key, value in fields.items():
            setattr(p, key, value)
        self.db.flush()
        return ProductRead.model_validate(p)

    def delete_product(self, sku: str) -> None:
        p = self._require_product(sku, for_update=True)
        self.db.delete(p)
        self.db.flush()

    def upsert_products(self, rows: Iterable[dict[str, Any]]) -> int:
        count = 0
        for row in rows:
            p = self._product(row["sku"], for_update=True)
            if p is None:
                p = Product(sku=row["sku"])
                self.db.add(p)
            for key in PRODUCT_FIELDS:
                if key in row:
                    setattr(p, key, row[key])
            count += 1
        self.db.flush()
        return count

    def adjust_quantity(self, sku: str, delta: int) -> int:
        p = self._require_product(sku, for_update=True)
        new_qty = p.quantity + delta
        if new_qty < 0:
            raise InsufficientStockError(available=p.quantity)
        p.quantity = new_qty
        self.db.flush()
        return new_qty

    # ---------- RESERVATIONS ----------
    def get_reservation(self, reservation_id: int, *, for_update: bool = False) -> ReservationRead | None:
        r = self._reservation(reservation_id, for_update=for_update)
        return ReservationRead.model_validate(r) if r else None

    def list_reservations(self) -> list[ReservationRead]:
        rows = (
            self.db.execute(
                select(Reservation)
                .options(selectinload(Reservation.product))
                .order_by(Reservation.created_at.desc(), Reservation.id.desc())
            )
            .scalars()
            .all()
        )
        return [ReservationRead.model_validate(r) for r in rows]

    def insert_reservation(self, fields: dict[str, Any]) -> int:
        r = Reservation(**fields)
        self.db.add(r)
        self.db.flush()
        return int(r.id)

    def _locked_reservation(self, reservation_id: int, expected: dict[str, Any] | None) -> Reservation:
        r = self._reservation(reservation_id, for_update=True)
        if not r:
            raise NotFoundError("reservation not found")
        for key, value in (expected or {}).items():
            if getattr(r, key) != value:
                raise ConflictError(f"reservation {reservation_id} was modified concurrently")
        return r

    def update_reservation(
        self,
        reservation_id: int,
        fields: dict[str, Any],
        *,
        expected: dict[str, Any] | None = None,
    ) -> None:
        r = self._locked_reservation(reservation_id, expected)
        for key, value in fields.items():
            setattr(r, key, value)
        r.updated_at = fields.get("updated_at", utcnow())
        self.db.flush()

    def delete_reservation(self, reservation_id: int, *, expected: dict[str, Any] | None = None) -> None:
        r = self._locked_reservation(reservation_id, expected)
        self.db.delete(r)
        self.db.flush()

    def count_active_reservations(self, sku: str) -> int:
        return int(
            self.db.scalar(
                select(func.count())
                .select_from(Reservation)
                .where(Reservation.product_sku == sku)
                .where(Reservation.status.in_([s.value for s in ACTIVE_STATUSES]))
            )
            or 0
        )

    # ---------- ADMIN ----------
    def reset(self, *, seed: bool = True) -> None:
        conn = self.db.connection()
        Base.metadata.drop_all(bind=conn)
        Base.metadata.create_all(bind=conn)
        self.db.expunge_all()
        if seed:
            for row in SEED_PRODUCTS:
                self.db.add(Product(**row))
        self.db.flush()

    def clear(self) -> None:
        self.db.execute(delete(Reservation))
        self.db.execute(delete(Product))
        self.db.expunge_all()

    @contextmanager
    def atomic(self) -> Iterator[UnitOfWork]:
        unit = UnitOfWork()
        try:
            yield unit
            self.db.commit()
        except Exception:
            # le ROLLBACK annule toutes les écritures : pas de compensation à rejouer
            self.db.rollback()
            unit.discard()
            raise
