from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger


class StockError(Exception):
    """Erreur métier : porte le code HTTP et le payload renvoyé au client."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def payload(self) -> dict[str, Any]:
        return {"ok": False, "error": self.message, **self.extra}


class NotFoundError(StockError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidArgumentError(StockError):
    pass


class InsufficientStockError(StockError):
    def __init__(self, available: int, message: str = "insufficient stock") -> None:
        super().__init__(message, available=int(available))
        self.available = int(available)


class InvalidStateError(StockError):
    pass


class ConflictError(StockError):
    pass


class InternalError(StockError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def stock_error_handler(request: Request, exc: StockError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("{} {} -> {}: {}", request.method, request.url.path, exc.status_code, exc.message)
    else:
        logger.info("{} {} -> {}: {}", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"ok": False, "error": message},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"ok": False, "error": "internal error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StockError, stock_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
