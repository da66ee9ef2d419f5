from fastapi import APIRouter

from stockres.app.api.endpoints.products import router as products_router
from stockres.app.api.endpoints.reservations import router as reservations_router
from stockres.app.api.endpoints.database import router as database_router

router = APIRouter()
router.include_router(products_router, tags=["products"])
router.include_router(reservations_router, tags=["reservations"])
router.include_router(database_router, tags=["database"])
