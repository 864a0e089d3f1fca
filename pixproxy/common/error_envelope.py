"""Canonical error envelope for all pixproxy responses.

Standardized structure:
{
  "error": {
    "code": "string",
    "message": "string",
    "http_status": 400,
    "details": {}
  }
}
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from pixproxy.common.errors import PixproxyError

logger = logging.getLogger(__name__)


class ErrorDetail(BaseModel):
    """Canonical error detail structure."""
    code: str
    message: str
    http_status: int
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorEnvelope(BaseModel):
    """Top-level error envelope returned by all pixproxy endpoints."""
    error: ErrorDetail


def build_error_envelope(
    code: str,
    message: str,
    status_code: int = 400,
    details: Optional[Dict[str, Any]] = None,
) -> ErrorEnvelope:
    """Construct an ErrorEnvelope (without raising).

    Args mirror the JSON body; http_status mirrors status_code.
    """
    error_detail = ErrorDetail(
        code=code,
        message=message,
        http_status=status_code,
        details=details or {},
    )
    return ErrorEnvelope(error=error_detail)


def envelope_for(exc: PixproxyError) -> ErrorEnvelope:
    return build_error_envelope(
        code=exc.code,
        message=exc.message,
        status_code=exc.http_status,
        details=exc.details,
    )


async def _pixproxy_error_handler(request: Request, exc: PixproxyError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    envelope = envelope_for(exc)
    return JSONResponse(status_code=exc.http_status, content=envelope.model_dump())


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    envelope = build_error_envelope(
        code="internal.error",
        message="An unexpected error occurred",
        status_code=500,
    )
    return JSONResponse(status_code=500, content=envelope.model_dump())


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PixproxyError, _pixproxy_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
