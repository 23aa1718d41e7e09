"""
FastAPI exception handlers for the order API.

OrdersError is rendered from its registry entry. Store failures, store
timeouts and anything unexpected are mapped onto registry codes so every
error response has the same shape:

    {"message": ..., "error": {"code", "title", "retryable", ...}}

Outside production the internal exception text is added as "detail".
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from assessment_orders.config import settings
from assessment_orders.core.errors import OrdersError
from assessment_orders.core.errors.registry import error_registry

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE = "ORD-DB-001"
STORE_TIMEOUT = "ORD-DB-002"
INTERNAL_ERROR = "ORD-SYS-001"
ROUTE_NOT_FOUND = "ORD-API-002"


async def orders_error_handler(request: Request, exc: OrdersError) -> JSONResponse:
    """Convert OrdersError into a structured JSON response."""
    entry = error_registry.get(exc.code)

    if entry is None:
        logger.error(
            "unregistered_error_code",
            extra={"error.code": exc.code, "error.message": exc.detail},
        )
        content = {
            "message": "Internal server error",
            "error": {
                "code": exc.code,
                "title": "Internal error",
                "retryable": False,
                "remediation": [],
            },
        }
        _attach_detail(content, exc.detail)
        return JSONResponse(status_code=500, content=content)

    log_extra = {
        "error.code": exc.code,
        "error.kind": type(exc).__name__,
        "error.message": exc.detail,
        "http.method": request.method,
        "http.path": request.url.path,
        **{f"error.ctx.{k}": v for k, v in exc.context.items()},
    }
    _severity_to_log_fn(entry.severity)(entry.title, extra=log_extra)

    content = {
        "message": entry.safe_message,
        "error": {
            "code": entry.code,
            "title": entry.title,
            "retryable": entry.retryable,
            "remediation": entry.remediation,
        },
    }
    _attach_detail(content, exc.detail)
    return JSONResponse(status_code=entry.http_status, content=content)


async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Order store error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return await orders_error_handler(request, OrdersError(STORE_UNAVAILABLE, detail=str(exc)))


async def store_timeout_handler(request: Request, exc: TimeoutError) -> JSONResponse:
    logger.error("Order store timeout on %s %s: %s", request.method, request.url.path, exc)
    return await orders_error_handler(request, OrdersError(STORE_TIMEOUT, detail=str(exc)))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all so unhandled exceptions return JSON (not bare text)."""
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return await orders_error_handler(request, OrdersError(INTERNAL_ERROR, detail=str(exc)))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes get the registry 404; other HTTP errors keep their status."""
    if exc.status_code == 404:
        return await orders_error_handler(request, OrdersError(ROUTE_NOT_FOUND, detail=request.url.path))
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def _attach_detail(content: dict, detail) -> None:
    if detail and not settings.is_production:
        content["detail"] = detail


def _severity_to_log_fn(severity: str):
    """Map registry severity to logger method."""
    return {
        "DEBUG": logger.debug,
        "INFO": logger.info,
        "WARN": logger.warning,
        "ERROR": logger.error,
        "CRITICAL": logger.critical,
    }.get(severity, logger.error)
