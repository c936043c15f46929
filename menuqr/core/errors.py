"""
Exception handlers.

Every error body has the shape ``{"error": <message>, ...}``:
    - HTTPException with a string detail  -> {"error": detail}
    - HTTPException with a dict detail    -> the dict as-is
    - Request validation failures         -> 400 {"error": "Validation failed", "details": [...]}
    - Anything unhandled                  -> 500, detail and stack only in development
"""

import logging
import traceback

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from menuqr.core.config import get_settings

logger = logging.getLogger(__name__)


def server_error(error: str, exc: Exception) -> HTTPException:
    """500 carrying the driver / library message under `details`."""
    return HTTPException(status_code=500, detail={"error": error, "details": str(exc)})


def _validation_details(exc: RequestValidationError) -> list[dict]:
    details = []
    for err in exc.errors():
        # Drop the "body" prefix so clients see the field name
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        details.append({
            "field": ".".join(loc),
            "msg": err.get("msg", ""),
            "type": err.get("type", ""),
        })
    return details


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail}
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(content),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"Validation failed on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": _validation_details(exc)},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")

    content = {"error": "Internal server error"}
    if get_settings().is_development:
        content["detail"] = str(exc)
        content["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=500, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
