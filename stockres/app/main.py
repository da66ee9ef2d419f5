from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stockres.app.api.deps import close_remote_store
from stockres.app.api.endpoints.health import router as health_router
from stockres.app.api.router import router as api_router
from stockres.app.core.config import settings
from stockres.app.core.errors import register_exception_handlers
from stockres.app.core.logging import configure_logging
from stockres.app.db.models.core_types import StorageBackend
from stockres.app.db.seed import run_seed

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.storage_backend == StorageBackend.sql:
        run_seed()
    yield
    close_remote_store()


app = FastAPI(title="Stock Reservation API", version="0.1.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
register_exception_handlers(app)

app.include_router(health_router, tags=["health"])
app.include_router(api_router, prefix="/api")
