"""
Calcul du devis d'une réservation.

    subtotal      = prix unitaire x quantité
    discount      = remise fixe, plafonnée au subtotal
    vat_amount    = (subtotal - discount) x vat / 100
    total         = subtotal - discount + vat_amount
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Quote:
    unit_price: Decimal
    quantity: int
    subtotal: Decimal
    discount: Decimal
    after_discount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total: Decimal

    def as_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "discount_amount": float(self.discount),
            "after_discount": float(self.after_discount),
            "vat_amount": float(self.vat_amount),
            "total": float(self.total),
        }


def subtotal(unit_price, quantity: int) -> Decimal:
    return _money(Decimal(str(unit_price or 0)) * int(quantity))


def compute_quote(unit_price, quantity: int, discount=0, vat_rate=0) -> Quote:
    sub = subtotal(unit_price, quantity)
    disc = min(_money(discount), sub)
    after = sub - disc
    rate = Decimal(str(vat_rate or 0))
    vat_amount = _money(after * rate / 100)
    return Quote(
        unit_price=_money(unit_price),
        quantity=int(quantity),
        subtotal=sub,
        discount=disc,
        after_discount=after,
        vat_rate=rate,
        vat_amount=vat_amount,
        total=after + vat_amount,
    )
