from __future__ import annotations

from functools import lru_cache
from typing import Generator

from fastapi import Depends

from stockres.app.core.config import settings
from stockres.app.db.models.core_types import StorageBackend
from stockres.app.db.session import SessionLocal
from stockres.services.reservations import ReservationCoordinator
from stockres.services.stores.base import ReservationStore
from stockres.services.stores.sql import SqlStore
from stockres.services.stores.supabase import SupabaseStore


@lru_cache(maxsize=1)
def get_remote_store() -> SupabaseStore:
    # une seule instance par process : réutilise la session HTTP (pool de connexions)
    return SupabaseStore(
        settings.supabase_url,
        settings.supabase_key,
        timeout=settings.remote_timeout_seconds,
        max_retries=settings.cas_max_retries,
    )


def close_remote_store() -> None:
    if get_remote_store.cache_info().currsize:
        get_remote_store().close()
        get_remote_store.cache_clear()


def get_store() -> Generator[ReservationStore, None, None]:
    if settings.storage_backend == StorageBackend.supabase:
        yield get_remote_store()
        return

    db = SessionLocal()
    try:
        yield SqlStore(db)
    finally:
        db.close()


def get_coordinator(store: ReservationStore = Depends(get_store)) -> ReservationCoordinator:
    return ReservationCoordinator(store, completion_policy=settings.completion_policy)
