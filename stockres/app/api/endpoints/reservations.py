from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from stockres.app.api.deps import get_coordinator, get_store
from stockres.app.core.errors import NotFoundError
from stockres.app.schemas.reservation import (
    QuantityUpdate,
    ReservationCreate,
    ReservationRead,
    StatusUpdate,
)
from stockres.services.export import reservations_csv
from stockres.services.quote import quote_for, render_quote_pdf
from stockres.services.reservations import ReservationCoordinator
from stockres.services.stores.base import ReservationStore

router = APIRouter(prefix="/reservations")


def _payload(r: ReservationRead) -> dict:
    return {**r.model_dump(mode="json"), **quote_for(r).as_dict()}


def _require(store: ReservationStore, reservation_id: int) -> ReservationRead:
    r = store.get_reservation(reservation_id)
    if r is None:
        raise NotFoundError("not found")
    return r


@router.get("/export")
def export_reservations(store: ReservationStore = Depends(get_store)):
    return Response(
        content=reservations_csv(store.list_reservations()),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="reservations.csv"'},
    )


@router.get("")
def list_reservations(store: ReservationStore = Depends(get_store)):
    return {"ok": True, "items": [_payload(r) for r in store.list_reservations()]}


@router.get("/{reservation_id}")
def get_reservation(reservation_id: int, store: ReservationStore = Depends(get_store)):
    return {"ok": True, "reservation": _payload(_require(store, reservation_id))}


@router.get("/{reservation_id}/quote")
def get_quote(reservation_id: int, store: ReservationStore = Depends(get_store)):
    r = _require(store, reservation_id)
    return Response(
        content=render_quote_pdf(r),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="quote_{r.id}.pdf"'},
    )


@router.post("")
def create_reservation(
    payload: ReservationCreate,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    reservation_id = coordinator.create(**payload.model_dump())
    return {"ok": True, "id": reservation_id}


@router.put("/{reservation_id}/status")
def update_status(
    reservation_id: int,
    payload: StatusUpdate,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    return {"ok": True, "changes": coordinator.update_status(reservation_id, payload.status)}


@router.put("/{reservation_id}")
def update_quantity(
    reservation_id: int,
    payload: QuantityUpdate,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    return {"ok": True, "changes": coordinator.update_quantity(reservation_id, payload.reserved_quantity)}


@router.delete("/{reservation_id}")
def delete_reservation(
    reservation_id: int,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    return {"ok": True, "deleted": coordinator.delete(reservation_id)}
