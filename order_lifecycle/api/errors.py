"""
Error envelope for every failed request:

    {"error": {"message": "...", "details": [...]}}
"""
import logging
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from order_lifecycle.core.errors import (
    NotFound,
    OptimisticLockError,
    OrderLifecycleError,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

_STATUS_FOR = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (OptimisticLockError, status.HTTP_409_CONFLICT),
    (ValidationFailed, status.HTTP_400_BAD_REQUEST),
)


def http_error(exc: OrderLifecycleError) -> HTTPException:
    """Translate a service error into an HTTPException carrying {message, details}."""
    for cls, code in _STATUS_FOR:
        if isinstance(exc, cls):
            return HTTPException(status_code=code, detail=exc.to_detail())
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.to_detail())


def _envelope(message: str, details: List[Any]) -> Dict[str, Any]:
    return {"error": {"message": message, "details": details}}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        body = _envelope(str(detail.get("message") or ""), list(detail.get("details") or []))
    else:
        body = _envelope(str(detail), [])
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(body),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(_envelope("Validation failed", details)),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope("Internal server error", []),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
