"""
Coordinateur des réservations de stock.

Invariant (par SKU) :
    product.quantity == stock physique - SUM(reserved_quantity des réservations pending/confirmed)
    product.quantity >= 0

Le stock est retiré à la création de la réservation ; "completed" finalise
sans nouveau mouvement (voir CompletionPolicy pour les variantes).

Chaque opération s'exécute dans store.atomic() :
- backend transactionnel : une transaction, lignes verrouillées, ROLLBACK en cas d'erreur
- backend sans transaction : écritures compensatoires rejouées en ordre inverse

Les écritures sur la réservation portent les valeurs lues (expected=...) : si une
autre opération l'a modifiée entre-temps, ConflictError et le stock déjà bougé
est rendu (ROLLBACK ou compensation).
"""

from __future__ import annotations

from functools import partial

from loguru import logger

from stockres.app.core.errors import (
    InsufficientStockError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from stockres.app.db.models.core_types import CompletionPolicy, ReservationStatus
from stockres.app.db.models.models import utcnow
from stockres.app.schemas.reservation import ReservationRead
from stockres.services.pricing import subtotal
from stockres.services.stores.base import ReservationStore

VALID_STATUSES = tuple(s.value for s in ReservationStatus)


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgumentError(f"{field} must be a positive number")
    return int(value)


def _non_negative(value, field: str) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError(f"{field} must be a number") from exc
    if number < 0:
        raise InvalidArgumentError(f"{field} must be >= 0")
    return number


def _required_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{field} required")
    return value.strip()


def parse_status(value) -> ReservationStatus:
    try:
        return ReservationStatus(value)
    except ValueError as exc:
        raise InvalidArgumentError(f"status must be one of: {', '.join(VALID_STATUSES)}") from exc


class ReservationCoordinator:
    def __init__(
        self,
        store: ReservationStore,
        *,
        completion_policy: CompletionPolicy = CompletionPolicy.check,
    ) -> None:
        self.store = store
        self.completion_policy = CompletionPolicy(completion_policy)

    def _require_reservation(self, reservation_id: int) -> ReservationRead:
        r = self.store.get_reservation(reservation_id, for_update=True)
        if r is None:
            raise NotFoundError("reservation not found")
        return r

    # ---------- CREATE ----------
    def create(
        self,
        product_sku: str,
        customer_name: str,
        reserved_quantity: int,
        sales_person: str = "",
        discount=0,
        vat=0,
    ) -> int:
        product_sku = _required_text(product_sku, "product_sku")
        customer_name = _required_text(customer_name, "customer_name")
        qty = _positive_int(reserved_quantity, "reserved_quantity")
        discount = _non_negative(discount, "discount")
        vat = _non_negative(vat, "vat")

        with self.store.atomic() as unit:
            product = self.store.get_product(product_sku, for_update=True)
            if product is None:
                raise NotFoundError("product not found")

            if product.quantity < qty:
                raise InsufficientStockError(available=product.quantity)

            if discount > subtotal(product.price, qty):
                raise InvalidArgumentError("discount cannot exceed subtotal")

            now = utcnow()
            reservation_id = self.store.insert_reservation(
                {
                    "product_sku": product_sku,
                    "customer_name": customer_name,
                    "reserved_quantity": qty,
                    "sales_person": (sales_person or "").strip(),
                    "discount": discount,
                    "vat": vat,
                    "status": ReservationStatus.pending.value,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            unit.on_rollback(
                f"delete reservation {reservation_id}",
                partial(self.store.delete_reservation, reservation_id),
            )

            self.store.adjust_quantity(product_sku, -qty)

        logger.info("Reservation {} created: {} x {} for {}", reservation_id, qty, product_sku, customer_name)
        return reservation_id

    # ---------- STATUS ----------
    def update_status(self, reservation_id: int, new_status) -> int:
        """Returns the number of changed reservations (0 when already in the target status)."""
        target = parse_status(new_status)

        with self.store.atomic() as unit:
            r = self._require_reservation(reservation_id)
            current = ReservationStatus(r.status)

            if current == target:
                logger.debug("Reservation {} already {}", reservation_id, target.value)
                return 0

            sku, qty = r.product_sku, r.reserved_quantity

            if target == ReservationStatus.cancelled:
                # rendre le stock retenu
                self.store.adjust_quantity(sku, qty)
                unit.on_rollback(f"re-take {qty} x {sku}", partial(self.store.adjust_quantity, sku, -qty))

            elif current == ReservationStatus.cancelled:
                # réactivation : le stock avait été rendu, on le reprend
                self.store.adjust_quantity(sku, -qty)
                unit.on_rollback(f"return {qty} x {sku}", partial(self.store.adjust_quantity, sku, qty))

            elif target == ReservationStatus.completed:
                self._complete(unit, sku, qty)

            self.store.update_reservation(
                reservation_id,
                {"status": target.value, "updated_at": utcnow()},
                expected={"status": current.value},
            )

        logger.info("Reservation {}: {} -> {}", reservation_id, current.value, target.value)
        return 1

    def _complete(self, unit, sku: str, qty: int) -> None:
        if self.completion_policy == CompletionPolicy.finalize:
            return

        if self.completion_policy == CompletionPolicy.consume:
            # variante historique : double décrément (stock déjà retiré à la création)
            logger.warning("Completion policy 'consume': removing {} x {} a second time", qty, sku)
            self.store.adjust_quantity(sku, -qty)
            unit.on_rollback(f"return {qty} x {sku}", partial(self.store.adjust_quantity, sku, qty))
            return

        product = self.store.get_product(sku, for_update=True)
        if product is None:
            raise NotFoundError("product not found")
        if product.quantity < qty:
            raise InsufficientStockError(available=product.quantity)

    # ---------- QUANTITY ----------
    def update_quantity(self, reservation_id: int, new_quantity: int) -> int:
        new_qty = _positive_int(new_quantity, "reserved_quantity")

        with self.store.atomic() as unit:
            r = self._require_reservation(reservation_id)
            if r.status != ReservationStatus.pending:
                raise InvalidStateError("can only update quantity for pending reservations")

            product = self.store.get_product(r.product_sku, for_update=True)
            if product is None:
                raise NotFoundError("product not found")

            available = product.quantity + r.reserved_quantity
            if new_qty > available:
                raise InsufficientStockError(available=available)

            old_qty = r.reserved_quantity
            if new_qty == old_qty:
                return 0

            self.store.update_reservation(
                reservation_id,
                {"reserved_quantity": new_qty, "updated_at": utcnow()},
                expected={"status": ReservationStatus.pending.value, "reserved_quantity": old_qty},
            )
            unit.on_rollback(
                f"restore reservation {reservation_id} quantity {old_qty}",
                partial(self.store.update_reservation, reservation_id, {"reserved_quantity": old_qty}),
            )

            self.store.adjust_quantity(r.product_sku, old_qty - new_qty)

        logger.info("Reservation {} quantity {} -> {}", reservation_id, old_qty, new_qty)
        return 1

    # ---------- DELETE ----------
    def delete(self, reservation_id: int) -> int:
        with self.store.atomic() as unit:
            r = self._require_reservation(reservation_id)

            if r.status != ReservationStatus.cancelled:
                self.store.adjust_quantity(r.product_sku, r.reserved_quantity)
                unit.on_rollback(
                    f"re-take {r.reserved_quantity} x {r.product_sku}",
                    partial(self.store.adjust_quantity, r.product_sku, -r.reserved_quantity),
                )

            self.store.delete_reservation(reservation_id, expected={"status": r.status.value})

        logger.info("Reservation {} deleted (status was {})", reservation_id, r.status.value)
        return reservation_id
