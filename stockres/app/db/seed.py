from __future__ import annotations

from sqlalchemy import select, func

from stockres.app.core.logging import configure_logging
from stockres.app.db.base import Base
from stockres.app.db.session import SessionLocal, engine
from stockres.app.db.models.models import Product

from loguru import logger

SEED_PRODUCTS = [
    {"sku": "BTH-0001", "name": "Single-Handle Basin Faucet", "category": "Faucet", "price": 1290, "quantity": 25},
    {"sku": "BTH-0002", "name": "Wall-Mounted Shower Set", "category": "Shower", "price": 2590, "quantity": 18},
    {"sku": "BTH-0003", "name": "One-Piece Toilet 4.8L", "category": "Toilet", "price": 6490, "quantity": 10},
    {"sku": "BTH-0004", "name": "Pedestal Basin 50cm", "category": "Basin", "price": 1890, "quantity": 14},
]


def run_seed() -> int:
    """Crée le schéma et insère les produits d'exemple si la table est vide."""
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        count = db.scalar(select(func.count()).select_from(Product))
        if count:
            logger.info("Seed skipped: {} products already present", count)
            return 0

        for row in SEED_PRODUCTS:
            db.add(Product(**row))
        db.commit()
        logger.info("Seeded {} sample products", len(SEED_PRODUCTS))
        return len(SEED_PRODUCTS)
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()
