"""
Lecture d'un fichier stock (Excel ou CSV) en lignes pour /api/products/bulk.

Colonnes attendues (casse indifférente) : SKU, Name, Category, Price, Quantity.
"""

from __future__ import annotations

from typing import Any, BinaryIO

import pandas as pd

from stockres.app.core.errors import InvalidArgumentError

COLUMN_ALIASES = {
    "sku": "sku",
    "name": "name",
    "product name": "name",
    "category": "category",
    "price": "price",
    "unit price": "price",
    "quantity": "quantity",
    "qty": "quantity",
}
FIELDS = ("sku", "name", "category", "price", "quantity")


def _py(value: Any) -> Any:
    # numpy -> types Python (sérialisables en JSON)
    if hasattr(value, "item"):
        value = value.item()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def read_product_sheet(source: BinaryIO, filename: str) -> list[dict[str, Any]]:
    suffix = filename.lower().rsplit(".", 1)[-1] if "." in filename else ""
    if suffix in ("xlsx", "xlsm"):
        df = pd.read_excel(source, engine="openpyxl")
    elif suffix == "csv":
        df = pd.read_csv(source)
    else:
        raise InvalidArgumentError("please upload a .xlsx or .csv file")

    df = df.rename(columns=lambda c: COLUMN_ALIASES.get(str(c).strip().lower(), str(c).strip().lower()))
    if "sku" not in df.columns:
        raise InvalidArgumentError("missing SKU column")

    df = df[[c for c in FIELDS if c in df.columns]]
    df = df.astype(object).where(pd.notna(df), None)

    rows: list[dict[str, Any]] = []
    for record in df.to_dict(orient="records"):
        row = {k: _py(v) for k, v in record.items() if v is not None}
        if "sku" in row:
            row["sku"] = str(row["sku"]).strip()
        for key in ("name", "category"):
            if key in row:
                row[key] = str(row[key]).strip()
        rows.append(row)
    return rows
