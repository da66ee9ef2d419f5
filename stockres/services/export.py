from __future__ import annotations

from typing import Iterable

import pandas as pd

from stockres.app.schemas.product import ProductRead
from stockres.app.schemas.reservation import ReservationRead

PRODUCT_COLUMNS = ["ID", "SKU", "Name", "Category", "Price", "Quantity"]
RESERVATION_COLUMNS = [
    "ID",
    "Product SKU",
    "Product Name",
    "Customer Name",
    "Sales Person",
    "Quantity",
    "Status",
    "Discount",
    "VAT",
    "Created At",
    "Updated At",
]


def _ts(value) -> str:
    return value.isoformat() if value is not None else ""


def products_csv(products: Iterable[ProductRead]) -> str:
    df = pd.DataFrame(
        [
            {
                "ID": p.id,
                "SKU": p.sku,
                "Name": p.name or "",
                "Category": p.category or "",
                "Price": p.price,
                "Quantity": p.quantity,
            }
            for p in products
        ],
        columns=PRODUCT_COLUMNS,
    )
    return df.to_csv(index=False, lineterminator="\n")


def reservations_csv(reservations: Iterable[ReservationRead]) -> str:
    df = pd.DataFrame(
        [
            {
                "ID": r.id,
                "Product SKU": r.product_sku,
                "Product Name": r.product_name or "",
                "Customer Name": r.customer_name,
                "Sales Person": r.sales_person or "",
                "Quantity": r.reserved_quantity,
                "Status": r.status.value,
                "Discount": r.discount or 0,
                "VAT": r.vat or 0,
                "Created At": _ts(r.created_at),
                "Updated At": _ts(r.updated_at),
            }
            for r in reservations
        ],
        columns=RESERVATION_COLUMNS,
    )
    return df.to_csv(index=False, lineterminator="\n")
