from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stockres.app.api.deps import get_store
from stockres.app.core.errors import (
    ConflictError,
    InsufficientStockError,
    InternalError,
    NotFoundError,
)
from stockres.app.db.base import Base
from stockres.app.db.models.core_types import ACTIVE_STATUSES
from stockres.app.db.models.models import Product
from stockres.app.main import app
from stockres.app.schemas.product import ProductRead
from stockres.app.schemas.reservation import ReservationRead
from stockres.services.stores.base import ReservationStore, UnitOfWork
from stockres.services.stores.sql import SqlStore


@pytest.fixture(scope="function")
def engine():
    """
    SQLite en mémoire, une base neuve par test.

    StaticPool : une seule connexion partagée (sinon chaque connexion
    verrait sa propre base vide).
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Session:
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db_session) -> SqlStore:
    return SqlStore(db_session)


@pytest.fixture
def make_product(db_session):
    def _make(sku: str = "BTH-0001", quantity: int = 25, price: float = 1290, **extra) -> Product:
        p = Product(
            sku=sku,
            name=extra.get("name", f"Product {sku}"),
            category=extra.get("category", "Faucet"),
            price=price,
            quantity=quantity,
        )
        db_session.add(p)
        db_session.commit()
        return p

    return _make


@pytest.fixture
def stock_of(db_session):
    """Quantité en base (lecture colonne : ignore l'identity map)."""

    def _stock(sku: str) -> int:
        return db_session.scalar(select(Product.quantity).where(Product.sku == sku))

    return _stock


@pytest.fixture
def client(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_store():
        db = TestingSession()
        try:
            yield SqlStore(db)
        finally:
            db.close()

    app.dependency_overrides[get_store] = override_get_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ---------- store en mémoire, sans transaction, avec pannes injectables ----------
class MemoryStore(ReservationStore):
    transactional = False

    def __init__(self) -> None:
        self.products: dict[str, dict[str, Any]] = {}
        self.reservations: dict[int, dict[str, Any]] = {}
        self._next_id = 1
        self._failures: dict[str, Exception] = {}
        self.calls: list[str] = []

    def fail_next(self, method: str, exc: Exception | None = None) -> None:
        self._failures[method] = exc or InternalError(f"{method} failed")

    def _write(self, method: str) -> None:
        self.calls.append(method)
        exc = self._failures.pop(method, None)
        if exc is not None:
            raise exc

    def add_product(self, sku: str, quantity: int, price: float = 100) -> None:
        self.products[sku] = {"id": len(self.products) + 1, "sku": sku, "name": sku, "category": None,
                              "price": price, "quantity": quantity}

    def get_product(self, sku, *, for_update=False):
        row = self.products.get(sku)
        return ProductRead.model_validate(row) if row else None

    def list_products(self):
        return [ProductRead.model_validate(r) for r in self.products.values()]

    def insert_product(self, fields):
        self._write("insert_product")
        if fields["sku"] in self.products:
            raise ConflictError("SKU already exists")
        self.products[fields["sku"]] = {"id": len(self.products) + 1, **fields}
        return ProductRead.model_validate(self.products[fields["sku"]])

    def update_product(self, sku, fields):
        self._write("update_product")
        if sku not in self.products:
            raise NotFoundError("product not found")
        self.products[sku].update(fields)
        return ProductRead.model_validate(self.products[sku])

    def delete_product(self, sku):
        self._write("delete_product")
        if self.products.pop(sku, None) is None:
            raise NotFoundError("product not found")

    def upsert_products(self, rows: Iterable[dict[str, Any]]) -> int:
        self._write("upsert_products")
        n = 0
        for row in rows:
            self.products.setdefault(row["sku"], {"id": len(self.products) + 1}).update(row)
            n += 1
        return n

    def adjust_quantity(self, sku, delta):
        self._write("adjust_quantity")
        row = self.products.get(sku)
        if row is None:
            raise NotFoundError("product not found")
        if row["quantity"] + delta < 0:
            raise InsufficientStockError(available=row["quantity"])
        row["quantity"] += delta
        return row["quantity"]

    def _read(self, row):
        product = self.products.get(row["product_sku"], {})
        return ReservationRead.model_validate(
            {**row, "product_name": product.get("name"), "product_price": product.get("price")}
        )

    def get_reservation(self, reservation_id, *, for_update=False):
        row = self.reservations.get(reservation_id)
        return self._read(row) if row else None

    def list_reservations(self):
        return [self._read(r) for r in self.reservations.values()]

    def insert_reservation(self, fields):
        self._write("insert_reservation")
        rid = self._next_id
        self._next_id += 1
        self.reservations[rid] = {"id": rid, **fields}
        return rid

    def _check(self, reservation_id, expected):
        row = self.reservations.get(reservation_id)
        if row is None:
            raise NotFoundError("reservation not found")
        if any(row.get(k) != v for k, v in (expected or {}).items()):
            raise ConflictError(f"reservation {reservation_id} was modified concurrently")
        return row

    def update_reservation(self, reservation_id, fields, *, expected=None):
        self._write("update_reservation")
        self._check(reservation_id, expected).update(fields)

    def delete_reservation(self, reservation_id, *, expected=None):
        self._write("delete_reservation")
        self._check(reservation_id, expected)
        del self.reservations[reservation_id]

    def count_active_reservations(self, sku):
        active = {s.value for s in ACTIVE_STATUSES}
        return sum(1 for r in self.reservations.values() if r["product_sku"] == sku and r["status"] in active)

    def reset(self, *, seed=True):
        self.clear()

    def clear(self):
        self.products.clear()
        self.reservations.clear()

    @contextmanager
    def atomic(self):
        unit = UnitOfWork()
        try:
            yield unit
        except Exception as exc:
            unit.compensate(exc)
            raise


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()
