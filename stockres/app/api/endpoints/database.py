from __future__ import annotations

from fastapi import APIRouter, Depends
from loguru import logger

from stockres.app.api.deps import get_store
from stockres.services.stores.base import ReservationStore

router = APIRouter(prefix="/database")


@router.post("/create")
def create_database(store: ReservationStore = Depends(get_store)):
    with store.atomic():
        store.reset(seed=True)
    logger.warning("Database recreated and seeded")
    return {"ok": True, "message": "Database created and seeded successfully"}


@router.delete("/delete")
def delete_database(store: ReservationStore = Depends(get_store)):
    with store.atomic():
        store.clear()
    logger.warning("Database cleared")
    return {"ok": True, "message": "Database cleared successfully"}
