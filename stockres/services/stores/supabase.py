"""
Backend "table distante" : API REST PostgREST exposée par Supabase.

Pas de transaction multi-requêtes côté client :
- atomic() enregistre des écritures compensatoires, rejouées si l'opération échoue
- adjust_quantity() est un compare-and-swap (filtre quantity=eq.<valeur lue>)
  borné à max_retries tentatives
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Iterator

import requests
from loguru import logger

from stockres.app.core.errors import (
    ConflictError,
    InsufficientStockError,
    InternalError,
    NotFoundError,
)
from stockres.app.db.models.core_types import ACTIVE_STATUSES
from stockres.app.db.models.models import utcnow
from stockres.app.db.seed import SEED_PRODUCTS
from stockres.app.schemas.product import ProductRead
from stockres.app.schemas.reservation import ReservationRead
from stockres.services.stores.base import ReservationStore, UnitOfWork

RETURN_ROWS = "return=representation"
RESERVATION_SELECT = "*,products(name,price)"


def _jsonable(fields: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        elif hasattr(value, "value"):  # enum
            value = value.value
        out[key] = value
    return out


def _reservation_from_row(row: dict[str, Any]) -> ReservationRead:
    row = dict(row)
    product = row.pop("products", None) or {}
    row.setdefault("product_name", product.get("name"))
    row.setdefault("product_price", product.get("price"))
    return ReservationRead.model_validate(row)


class SupabaseStore(ReservationStore):
    transactional = False

    def __init__(
        self,
        url: str,
        key: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 10,
        max_retries: int = 5,
    ) -> None:
        if not url:
            raise ValueError("SUPABASE_URL is required for the supabase backend")
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.http = session or requests.Session()
        self.http.headers.update(
            {
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            }
        )

    def close(self) -> None:
        self.http.close()

    # ---------- HTTP ----------
    def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        headers = {"Prefer": prefer} if prefer else {}
        try:
            resp = self.http.request(
                method,
                f"{self.base_url}/{table}",
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise InternalError(f"remote store unreachable: {exc}") from exc

        if resp.status_code == 409:
            raise ConflictError(f"duplicate key on {table}")
        if resp.status_code >= 400:
            raise InternalError(f"remote store error {resp.status_code} on {table}: {resp.text}")
        if not resp.content:
            return []
        data = resp.json()
        return data if isinstance(data, list) else [data]

    # ---------- PRODUCTS ----------
    def get_product(self, sku: str, *, for_update: bool = False) -> ProductRead | None:
        # pas de verrou distant : la cohérence passe par le CAS d'adjust_quantity
        rows = self._request("GET", "products", params={"sku": f"eq.{sku}", "select": "*"})
        return ProductRead.model_validate(rows[0]) if rows else None

    def list_products(self) -> list[ProductRead]:
        rows = self._request("GET", "products", params={"select": "*", "order": "id.desc"})
        return [ProductRead.model_validate(r) for r in rows]

    def insert_product(self, fields: dict[str, Any]) -> ProductRead:
        try:
            rows = self._request("POST", "products", json=_jsonable(fields), prefer=RETURN_ROWS)
        except ConflictError as exc:
            raise ConflictError(f"SKU already exists: {fields['sku']}") from exc
        return ProductRead.model_validate(rows[0])

    def update_product(self, sku: str, fields: dict[str, Any]) -> ProductRead:
        rows = self._request(
            "PATCH",
            "products",
            params={"sku": f"eq.{sku}"},
            json=_jsonable(fields),
            prefer=RETURN_ROWS,
        )
        if not rows:
            raise NotFoundError("product not found")
        return ProductRead.model_validate(rows[0])

    def delete_product(self, sku: str) -> None:
        if self.get_product(sku) is None:
            raise NotFoundError("product not found")
        self._request("DELETE", "reservations", params={"product_sku": f"eq.{sku}"})
        self._request("DELETE", "products", params={"sku": f"eq.{sku}"})

    def upsert_products(self, rows: Iterable[dict[str, Any]]) -> int:
        payload = [_jsonable(r) for r in rows]
        if not payload:
            return 0
        # une seule requête : PostgREST l'exécute dans une transaction
        result = self._request(
            "POST",
            "products",
            params={"on_conflict": "sku"},
            json=payload,
            prefer=f"resolution=merge-duplicates,{RETURN_ROWS}",
        )
        return len(result)

    def adjust_quantity(self, sku: str, delta: int) -> int:
        for attempt in range(1, self.max_retries + 1):
            product = self.get_product(sku)
            if product is None:
                raise NotFoundError("product not found")

            new_qty = product.quantity + delta
            if new_qty < 0:
                raise InsufficientStockError(available=product.quantity)

            rows = self._request(
                "PATCH",
                "products",
                params={"sku": f"eq.{sku}", "quantity": f"eq.{product.quantity}"},
                json={"quantity": new_qty},
                prefer=RETURN_ROWS,
            )
            if rows:
                return new_qty

            logger.debug("CAS miss on {} (attempt {}/{})", sku, attempt, self.max_retries)

        raise ConflictError(f"concurrent updates on {sku}, gave up after {self.max_retries} attempts")

    # ---------- RESERVATIONS ----------
    def get_reservation(self, reservation_id: int, *, for_update: bool = False) -> ReservationRead | None:
        rows = self._request(
            "GET",
            "reservations",
            params={"id": f"eq.{reservation_id}", "select": RESERVATION_SELECT},
        )
        return _reservation_from_row(rows[0]) if rows else None

    def list_reservations(self) -> list[ReservationRead]:
        rows = self._request(
            "GET",
            "reservations",
            params={"select": RESERVATION_SELECT, "order": "created_at.desc,id.desc"},
        )
        return [_reservation_from_row(r) for r in rows]

    def insert_reservation(self, fields: dict[str, Any]) -> int:
        rows = self._request("POST", "reservations", json=_jsonable(fields), prefer=RETURN_ROWS)
        return int(rows[0]["id"])

    def _guarded(self, reservation_id: int, expected: dict[str, Any] | None) -> dict[str, str]:
        # filtres CAS : la ligne n'est écrite que si elle a encore les valeurs lues
        params = {"id": f"eq.{reservation_id}"}
        for key, value in _jsonable(expected or {}).items():
            params[key] = f"eq.{value}"
        return params

    def _missed(self, reservation_id: int, expected: dict[str, Any] | None) -> Exception:
        # 0 ligne touchée : absente, ou modifiée depuis la lecture
        if expected and self.get_reservation(reservation_id) is not None:
            return ConflictError(f"reservation {reservation_id} was modified concurrently")
        return NotFoundError("reservation not found")

    def update_reservation(
        self,
        reservation_id: int,
        fields: dict[str, Any],
        *,
        expected: dict[str, Any] | None = None,
    ) -> None:
        fields = {"updated_at": utcnow(), **fields}
        rows = self._request(
            "PATCH",
            "reservations",
            params=self._guarded(reservation_id, expected),
            json=_jsonable(fields),
            prefer=RETURN_ROWS,
        )
        if not rows:
            raise self._missed(reservation_id, expected)

    def delete_reservation(self, reservation_id: int, *, expected: dict[str, Any] | None = None) -> None:
        rows = self._request(
            "DELETE",
            "reservations",
            params=self._guarded(reservation_id, expected),
            prefer=RETURN_ROWS,
        )
        if not rows:
            raise self._missed(reservation_id, expected)

    def count_active_reservations(self, sku: str) -> int:
        statuses = ",".join(sorted(s.value for s in ACTIVE_STATUSES))
        rows = self._request(
            "GET",
            "reservations",
            params={"product_sku": f"eq.{sku}", "status": f"in.({statuses})", "select": "id"},
        )
        return len(rows)

    # ---------- ADMIN ----------
    def reset(self, *, seed: bool = True) -> None:
        # pas de DDL via l'API : on vide puis on ré-insère l'échantillon
        self.clear()
        if seed:
            self._request("POST", "products", json=SEED_PRODUCTS)

    def clear(self) -> None:
        # PostgREST refuse un DELETE sans filtre
        self._request("DELETE", "reservations", params={"id": "gt.0"})
        self._request("DELETE", "products", params={"id": "gt.0"})

    @contextmanager
    def atomic(self) -> Iterator[UnitOfWork]:
        unit = UnitOfWork()
        try:
            yield unit
        except Exception as exc:
            unit.compensate(exc)
            raise
