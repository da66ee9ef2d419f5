"""
Interface de persistance commune aux backends (SQL, table distante).

Le coordinateur de réservations ne connaît que cette interface : toute la
logique stock / réservation est écrite une seule fois, au-dessus.
"""

from __future__ import annotations

import abc
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator

from loguru import logger

from stockres.app.core.errors import InternalError
from stockres.app.schemas.product import ProductRead
from stockres.app.schemas.reservation import ReservationRead


class UnitOfWork:
    """
    Écritures compensatoires enregistrées pendant une opération.

    Un backend transactionnel les ignore (le ROLLBACK suffit) ; un backend
    sans transaction les rejoue en ordre inverse quand l'opération échoue.
    """

    def __init__(self) -> None:
        self._undo: list[tuple[str, Callable[[], Any]]] = []

    def on_rollback(self, label: str, fn: Callable[[], Any]) -> None:
        self._undo.append((label, fn))

    @property
    def pending(self) -> int:
        return len(self._undo)

    def discard(self) -> None:
        self._undo.clear()

    def compensate(self, error: BaseException) -> None:
        failures: list[tuple[str, Exception]] = []
        while self._undo:
            label, fn = self._undo.pop()
            logger.warning("Compensating '{}' after error: {}", label, error)
            try:
                fn()
            except Exception as comp_exc:
                logger.error(
                    "Compensation '{}' failed: {} (original error: {})",
                    label,
                    comp_exc,
                    error,
                )
                failures.append((label, comp_exc))
            else:
                logger.info("Compensation '{}' applied", label)

        if failures:
            labels = ", ".join(label for label, _ in failures)
            raise InternalError(f"compensation failed ({labels}) after: {error}") from failures[0][1]


class ReservationStore(abc.ABC):
    # True quand atomic() ouvre une vraie transaction (ROLLBACK possible)
    transactional: bool = False

    # ---------- PRODUCTS ----------
    @abc.abstractmethod
    def get_product(self, sku: str, *, for_update: bool = False) -> ProductRead | None: ...

    @abc.abstractmethod
    def list_products(self) -> list[ProductRead]: ...

    @abc.abstractmethod
    def insert_product(self, fields: dict[str, Any]) -> ProductRead:
        """Raises ConflictError on duplicate SKU."""

    @abc.abstractmethod
    def update_product(self, sku: str, fields: dict[str, Any]) -> ProductRead:
        """Partial update. Raises NotFoundError."""

    @abc.abstractmethod
    def delete_product(self, sku: str) -> None:
        """Deletes the product and its closed reservations. Raises NotFoundError."""

    @abc.abstractmethod
    def upsert_products(self, rows: Iterable[dict[str, Any]]) -> int: ...

    @abc.abstractmethod
    def adjust_quantity(self, sku: str, delta: int) -> int:
        """
        quantity += delta, jamais en dessous de zéro.

        Raises NotFoundError, InsufficientStockError(available=quantity actuelle).
        Returns the new quantity.
        """

    # ---------- RESERVATIONS ----------
    @abc.abstractmethod
    def get_reservation(self, reservation_id: int, *, for_update: bool = False) -> ReservationRead | None: ...

    @abc.abstractmethod
    def list_reservations(self) -> list[ReservationRead]: ...

    @abc.abstractmethod
    def insert_reservation(self, fields: dict[str, Any]) -> int: ...

    @abc.abstractmethod
    def update_reservation(
        self,
        reservation_id: int,
        fields: dict[str, Any],
        *,
        expected: dict[str, Any] | None = None,
    ) -> None:
        """
        Partial update.

        expected : valeurs que la ligne doit encore avoir (status, reserved_quantity...),
        sinon ConflictError ; une transition concurrente ne peut pas être appliquée deux fois.
        Raises NotFoundError, ConflictError.
        """

    @abc.abstractmethod
    def delete_reservation(self, reservation_id: int, *, expected: dict[str, Any] | None = None) -> None:
        """Raises NotFoundError, ConflictError (see update_reservation)."""

    @abc.abstractmethod
    def count_active_reservations(self, sku: str) -> int: ...

    # ---------- ADMIN ----------
    @abc.abstractmethod
    def reset(self, *, seed: bool = True) -> None: ...

    @abc.abstractmethod
    def clear(self) -> None: ...

    @abc.abstractmethod
    @contextmanager
    def atomic(self) -> Iterator[UnitOfWork]: ...
