from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import Response

from stockres.app.api.deps import get_store
from stockres.app.schemas.product import ProductCreate, ProductUpdate
from stockres.services import catalog
from stockres.services.export import products_csv
from stockres.services.stores.base import ReservationStore

router = APIRouter(prefix="/products")


@router.get("/export")
def export_products(store: ReservationStore = Depends(get_store)):
    return Response(
        content=products_csv(store.list_products()),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="products.csv"'},
    )


@router.post("/bulk")
def bulk_products(rows: Any = Body(default=None), store: ReservationStore = Depends(get_store)):
    success, errors = catalog.bulk_upsert(store, rows)
    return {
        "ok": True,
        "successCount": success,
        "errorCount": errors,
        "message": f"Imported {success} products, {errors} errors",
    }


@router.get("")
def list_products(store: ReservationStore = Depends(get_store)):
    return {"ok": True, "items": [p.model_dump(mode="json") for p in store.list_products()]}


@router.get("/{sku}")
def get_product(sku: str, store: ReservationStore = Depends(get_store)):
    return {"ok": True, "product": catalog.get_product(store, sku).model_dump(mode="json")}


@router.post("")
def create_product(payload: ProductCreate, store: ReservationStore = Depends(get_store)):
    p = catalog.create_product(store, payload)
    return {"ok": True, "id": p.id, "sku": p.sku}


@router.put("/{sku}")
def update_product(sku: str, payload: ProductUpdate, store: ReservationStore = Depends(get_store)):
    return {"ok": True, "changes": catalog.update_product(store, sku, payload)}


@router.delete("/{sku}")
def delete_product(sku: str, store: ReservationStore = Depends(get_store)):
    return {"ok": True, "deleted": catalog.delete_product(store, sku)}
