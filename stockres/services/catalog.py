from __future__ import annotations

from typing import Any

from loguru import logger
from pydantic import ValidationError

from stockres.app.core.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from stockres.app.schemas.product import ProductCreate, ProductRead, ProductUpdate
from stockres.services.stores.base import ReservationStore

NOT_NULL_FIELDS = {"price", "quantity"}


def get_product(store: ReservationStore, sku: str) -> ProductRead:
    p = store.get_product(sku)
    if p is None:
        raise NotFoundError("not found")
    return p


def create_product(store: ReservationStore, payload: ProductCreate) -> ProductRead:
    with store.atomic():
        p = store.insert_product(payload.model_dump())
    logger.info("Product {} created (qty={})", p.sku, p.quantity)
    return p


def update_product(store: ReservationStore, sku: str, payload: ProductUpdate) -> int:
    # null explicite sur price / quantity : ignoré (colonnes NOT NULL)
    fields = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k not in NOT_NULL_FIELDS
    }

    with store.atomic():
        if store.get_product(sku, for_update=True) is None:
            raise NotFoundError("not found")
        if not fields:
            return 0
        store.update_product(sku, fields)

    logger.info("Product {} updated: {}", sku, sorted(fields))
    return 1


def delete_product(store: ReservationStore, sku: str) -> str:
    with store.atomic():
        if store.get_product(sku, for_update=True) is None:
            raise NotFoundError("not found")
        active = store.count_active_reservations(sku)
        if active:
            raise InvalidStateError(f"product has {active} active reservation(s)")
        store.delete_product(sku)

    logger.info("Product {} deleted", sku)
    return sku


def bulk_upsert(store: ReservationStore, rows: Any) -> tuple[int, int]:
    """
    Upsert par SKU, en une transaction.

    Les lignes sans SKU ou invalides sont comptées en erreur et ignorées.
    Returns (success_count, error_count).
    """
    if not isinstance(rows, list) or not rows:
        raise InvalidArgumentError("products must be a non-empty array")

    valid: dict[str, dict[str, Any]] = {}
    success = errors = 0
    for row in rows:
        if not isinstance(row, dict) or not row.get("sku"):
            errors += 1
            continue
        try:
            item = ProductCreate.model_validate(row)
        except ValidationError as exc:
            logger.debug("Bulk row rejected ({}): {}", row.get("sku"), exc.errors()[0].get("msg"))
            errors += 1
            continue
        # doublons de SKU dans le fichier : la dernière ligne gagne
        valid[item.sku] = item.model_dump()
        success += 1

    with store.atomic():
        store.upsert_products(list(valid.values()))

    logger.info("Bulk import: {} ok, {} errors", success, errors)
    return success, errors
