"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from clubhub.api.request_id import get_request_id
from clubhub.domain.activities.exceptions import ActivityError, InternalError

logger = logging.getLogger(__name__)

_KIND_BY_STATUS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ActivityError)
    async def activity_exc_handler(request: Request, exc: ActivityError):  # type: ignore[override]
        rid = get_request_id(request)
        if isinstance(exc, InternalError):
            logger.error("activity_internal_error", extra={"detail": exc.detail}, exc_info=exc.__cause__)
        payload = {"detail": exc.detail, "kind": exc.kind, "request_id": rid}
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        rid = get_request_id(request)
        kind = _KIND_BY_STATUS.get(exc.status_code, "error")
        payload = {"detail": exc.detail, "kind": kind, "request_id": rid}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {
            "detail": "validation_error",
            "kind": "validation_error",
            "errors": jsonable_encoder(exc.errors()),
            "request_id": rid,
        }
        return JSONResponse(status_code=422, content=payload)
