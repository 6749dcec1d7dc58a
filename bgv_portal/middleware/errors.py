from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from bgv_portal.core.errors import BGVError

logger = logging.getLogger("bgv.errors")


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    return {"error": {"code": code, "message": message, "details": details or {}}}


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BGVError)
    async def bgv_error_handler(request: Request, exc: BGVError) -> JSONResponse:
        logger.warning(
            "bgv_error",
            extra={"code": exc.code, "error_message": exc.message, "path": request.url.path},
        )
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.message, exc.details))

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        logger.warning("integrity_error", extra={"path": request.url.path, "error": str(exc.orig)})
        return JSONResponse(
            status_code=409,
            content=_error_body("CONFLICT", "The change conflicts with existing data."),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(f"HTTP_{exc.status_code}", str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )
