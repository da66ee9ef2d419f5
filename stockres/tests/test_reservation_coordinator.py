import random

import pytest
from sqlalchemy import select, func

from stockres.app.core.errors import (
    InsufficientStockError,
    InternalError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from stockres.app.db.models.core_types import CompletionPolicy
from stockres.app.db.models.models import Reservation
from stockres.services.reservations import ReservationCoordinator


@pytest.fixture
def coordinator(store):
    return ReservationCoordinator(store)


def _status(store, rid):
    return store.get_reservation(rid).status.value


def test_create_then_cancel_then_delete_scenario(coordinator, store, make_product, stock_of):
    """
    GIVEN BTH-0001 qty=25
    WHEN  réservation 5 -> annulation -> suppression
    THEN  25 -> 20 -> 25 -> 25 (pas de double restitution)
    """
    make_product("BTH-0001", quantity=25)

    rid = coordinator.create("BTH-0001", "Alice", 5)
    assert stock_of("BTH-0001") == 20
    assert _status(store, rid) == "pending"

    assert coordinator.update_status(rid, "cancelled") == 1
    assert stock_of("BTH-0001") == 25
    assert _status(store, rid) == "cancelled"

    assert coordinator.delete(rid) == rid
    assert store.get_reservation(rid) is None
    assert stock_of("BTH-0001") == 25


def test_create_exhausts_stock_then_second_create_fails(coordinator, make_product, stock_of):
    make_product("SKU-10", quantity=10)

    coordinator.create("SKU-10", "Bob", 10)
    assert stock_of("SKU-10") == 0

    with pytest.raises(InsufficientStockError) as exc:
        coordinator.create("SKU-10", "Carol", 1)

    assert exc.value.available == 0
    assert stock_of("SKU-10") == 0


def test_create_more_than_available_leaves_stock_untouched(coordinator, db_session, make_product, stock_of):
    make_product("SKU-A", quantity=3)

    with pytest.raises(InsufficientStockError) as exc:
        coordinator.create("SKU-A", "Dan", 4)

    assert exc.value.available == 3
    assert stock_of("SKU-A") == 3
    assert db_session.scalar(select(func.count()).select_from(Reservation)) == 0


def test_create_unknown_sku(coordinator):
    with pytest.raises(NotFoundError):
        coordinator.create("NOPE", "Eve", 1)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"product_sku": "", "customer_name": "A", "reserved_quantity": 1},
        {"product_sku": "SKU-A", "customer_name": "  ", "reserved_quantity": 1},
        {"product_sku": "SKU-A", "customer_name": "A", "reserved_quantity": 0},
        {"product_sku": "SKU-A", "customer_name": "A", "reserved_quantity": -2},
        {"product_sku": "SKU-A", "customer_name": "A", "reserved_quantity": 1.5},
        {"product_sku": "SKU-A", "customer_name": "A", "reserved_quantity": True},
        {"product_sku": "SKU-A", "customer_name": "A", "reserved_quantity": 1, "discount": -1},
    ],
)
def test_create_validation_happens_before_any_write(coordinator, make_product, stock_of, kwargs):
    make_product("SKU-A", quantity=5)

    with pytest.raises(InvalidArgumentError):
        coordinator.create(**kwargs)

    assert stock_of("SKU-A") == 5


def test_create_rejects_discount_above_subtotal(coordinator, make_product, stock_of):
    make_product("SKU-P", quantity=5, price=100)

    with pytest.raises(InvalidArgumentError):
        coordinator.create("SKU-P", "Fay", 2, discount=200.01)

    rid = coordinator.create("SKU-P", "Fay", 2, discount=200, vat=7)
    assert rid > 0
    assert stock_of("SKU-P") == 3


def test_update_quantity_scenario(coordinator, store, make_product, stock_of):
    make_product("SKU-Q", quantity=25)
    rid = coordinator.create("SKU-Q", "Gus", 5)
    assert stock_of("SKU-Q") == 20

    assert coordinator.update_quantity(rid, 8) == 1
    assert stock_of("SKU-Q") == 17
    assert store.get_reservation(rid).reserved_quantity == 8

    with pytest.raises(InsufficientStockError) as exc:
        coordinator.update_quantity(rid, 30)

    assert exc.value.available == 25
    assert stock_of("SKU-Q") == 17
    assert store.get_reservation(rid).reserved_quantity == 8


def test_update_quantity_down_returns_stock(coordinator, store, make_product, stock_of):
    make_product("SKU-Q", quantity=10)
    rid = coordinator.create("SKU-Q", "Gus", 6)

    coordinator.update_quantity(rid, 2)

    assert stock_of("SKU-Q") == 8
    assert store.get_reservation(rid).reserved_quantity == 2


@pytest.mark.parametrize("status", ["confirmed", "cancelled", "completed"])
def test_update_quantity_requires_pending(coordinator, store, make_product, stock_of, status):
    make_product("SKU-S", quantity=10)
    rid = coordinator.create("SKU-S", "Hal", 4)
    coordinator.update_status(rid, status)
    before = stock_of("SKU-S")

    with pytest.raises(InvalidStateError):
        coordinator.update_quantity(rid, 1)

    assert stock_of("SKU-S") == before
    assert store.get_reservation(rid).reserved_quantity == 4
    assert _status(store, rid) == status


def test_update_quantity_rejects_non_positive(coordinator, make_product):
    make_product("SKU-S", quantity=10)
    rid = coordinator.create("SKU-S", "Hal", 4)

    with pytest.raises(InvalidArgumentError):
        coordinator.update_quantity(rid, 0)


def test_update_status_rejects_unknown_value(coordinator, make_product):
    make_product("SKU-S", quantity=10)
    rid = coordinator.create("SKU-S", "Ian", 1)

    with pytest.raises(InvalidArgumentError):
        coordinator.update_status(rid, "shipped")


def test_update_status_unknown_reservation(coordinator):
    with pytest.raises(NotFoundError):
        coordinator.update_status(999, "confirmed")


@pytest.mark.parametrize("status", ["pending", "confirmed", "cancelled", "completed"])
def test_same_status_is_a_no_op(coordinator, make_product, stock_of, status):
    make_product("SKU-I", quantity=10)
    rid = coordinator.create("SKU-I", "Joe", 3)
    coordinator.update_status(rid, status)
    before = stock_of("SKU-I")

    assert coordinator.update_status(rid, status) == 0
    assert stock_of("SKU-I") == before


def test_confirm_has_no_stock_effect(coordinator, make_product, stock_of):
    make_product("SKU-C", quantity=10)
    rid = coordinator.create("SKU-C", "Kim", 3)

    coordinator.update_status(rid, "confirmed")

    assert stock_of("SKU-C") == 7


def test_complete_keeps_create_time_decrement(coordinator, store, make_product, stock_of):
    make_product("SKU-C", quantity=10)
    rid = coordinator.create("SKU-C", "Kim", 3)

    coordinator.update_status(rid, "completed")

    assert stock_of("SKU-C") == 7
    assert _status(store, rid) == "completed"


def test_complete_check_policy_refuses_when_remaining_stock_is_short(coordinator, store, make_product, stock_of):
    make_product("SKU-C", quantity=10)
    rid = coordinator.create("SKU-C", "Kim", 8)

    with pytest.raises(InsufficientStockError) as exc:
        coordinator.update_status(rid, "completed")

    assert exc.value.available == 2
    assert _status(store, rid) == "pending"
    assert stock_of("SKU-C") == 2


def test_complete_finalize_policy_skips_check(store, make_product, stock_of):
    coordinator = ReservationCoordinator(store, completion_policy=CompletionPolicy.finalize)
    make_product("SKU-C", quantity=10)
    rid = coordinator.create("SKU-C", "Kim", 10)

    coordinator.update_status(rid, "completed")

    assert stock_of("SKU-C") == 0
    assert _status(store, rid) == "completed"


def test_complete_consume_policy_decrements_again(store, make_product, stock_of):
    coordinator = ReservationCoordinator(store, completion_policy="consume")
    make_product("SKU-C", quantity=10)
    rid = coordinator.create("SKU-C", "Kim", 3)

    coordinator.update_status(rid, "completed")

    assert stock_of("SKU-C") == 4


def test_reactivating_cancelled_reservation_retakes_stock(coordinator, store, make_product, stock_of):
    make_product("SKU-R", quantity=5)
    rid = coordinator.create("SKU-R", "Lea", 5)
    coordinator.update_status(rid, "cancelled")
    assert stock_of("SKU-R") == 5

    coordinator.update_status(rid, "pending")

    assert stock_of("SKU-R") == 0
    assert _status(store, rid) == "pending"


def test_reactivating_cancelled_reservation_needs_stock(coordinator, store, make_product, stock_of):
    make_product("SKU-R", quantity=5)
    first = coordinator.create("SKU-R", "Lea", 5)
    coordinator.update_status(first, "cancelled")
    coordinator.create("SKU-R", "Max", 4)

    with pytest.raises(InsufficientStockError) as exc:
        coordinator.update_status(first, "confirmed")

    assert exc.value.available == 1
    assert _status(store, first) == "cancelled"
    assert stock_of("SKU-R") == 1


@pytest.mark.parametrize("status", ["pending", "confirmed", "completed"])
def test_delete_returns_stock_unless_cancelled(coordinator, make_product, stock_of, status):
    make_product("SKU-D", quantity=10)
    rid = coordinator.create("SKU-D", "Ned", 4)
    coordinator.update_status(rid, status)

    coordinator.delete(rid)

    assert stock_of("SKU-D") == 10


def test_delete_unknown_reservation(coordinator):
    with pytest.raises(NotFoundError):
        coordinator.delete(42)


def test_failed_stock_write_rolls_back_reservation_insert(coordinator, store, db_session, make_product, stock_of, monkeypatch):
    make_product("SKU-T", quantity=10)

    def boom(sku, delta):
        raise InternalError("disk full")

    monkeypatch.setattr(store, "adjust_quantity", boom)

    with pytest.raises(InternalError):
        coordinator.create("SKU-T", "Oli", 2)

    assert db_session.scalar(select(func.count()).select_from(Reservation)) == 0
    assert stock_of("SKU-T") == 10


def test_failed_status_write_rolls_back_stock_return(coordinator, store, make_product, stock_of, monkeypatch):
    make_product("SKU-T", quantity=10)
    rid = coordinator.create("SKU-T", "Oli", 2)

    def boom(reservation_id, fields, **kwargs):
        raise InternalError("lost connection")

    monkeypatch.setattr(store, "update_reservation", boom)

    with pytest.raises(InternalError):
        coordinator.update_status(rid, "cancelled")

    assert stock_of("SKU-T") == 8
    assert _status(store, rid) == "pending"


def test_random_sequences_never_drive_stock_negative(coordinator, store, make_product, stock_of):
    make_product("SKU-X", quantity=20)
    rng = random.Random(20261018)
    live: list[int] = []
    expected_errors = (InsufficientStockError, InvalidStateError)

    for _ in range(200):
        op = rng.choice(["create", "cancel", "complete", "confirm", "pending", "resize", "delete"])
        try:
            if op == "create" or not live:
                live.append(coordinator.create("SKU-X", "Rand", rng.randint(1, 8)))
            elif op == "delete":
                coordinator.delete(live.pop(rng.randrange(len(live))))
            elif op == "resize":
                coordinator.update_quantity(rng.choice(live), rng.randint(1, 8))
            else:
                target = {"cancel": "cancelled", "complete": "completed", "confirm": "confirmed"}.get(op, op)
                coordinator.update_status(rng.choice(live), target)
        except expected_errors:
            pass

        qty = stock_of("SKU-X")
        assert qty >= 0

        held = sum(
            r.reserved_quantity
            for r in store.list_reservations()
            if r.status.value in ("pending", "confirmed", "completed")
        )
        assert qty + held == 20
