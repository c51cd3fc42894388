from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.errors import BillsError
from ..services import generate_request_id


logger = logging.getLogger(__name__)


def _in_band_error(message: str, request_id: Optional[str] = None) -> JSONResponse:
    # Callers read the outcome from the body, never from the status code.
    content: dict[str, Any] = {"success": False, "error": message}
    if request_id is not None:
        content["requestId"] = request_id
    return JSONResponse(status_code=200, content=content)


def _payment_request_id(request: Request, exc: RequestValidationError) -> Optional[str]:
    """Echo the caller's requestId on payment calls, or mint one."""
    if request.method != "POST" or request.url.path.rstrip("/") != "/bills":
        return None
    body = exc.body
    if isinstance(body, dict):
        request_id = body.get("requestId")
        if isinstance(request_id, str) and request_id:
            return request_id
    return generate_request_id()


def _describe_validation(exc: RequestValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "Invalid request: " + "; ".join(problems)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BillsError)
    async def bills_error_handler(request: Request, exc: BillsError) -> JSONResponse:
        logger.info(
            "request.rejected",
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
        return _in_band_error(str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _in_band_error(_describe_validation(exc), _payment_request_id(request, exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return _in_band_error(str(exc))
