"""
Error types raised by the record gateway and their HTTP translation.

Handlers never retry; every failure is reported to the caller as a JSON
body of the form ``{"error": message}``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from feedlog.config import get_settings

logger = logging.getLogger(__name__)


class FeedlogError(Exception):
    """Base class for gateway failures that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingParameter(FeedlogError):
    """A required query parameter or body field was not supplied."""

    status_code = 400


class InvalidParameter(FeedlogError):
    """A supplied parameter cannot be accepted (e.g. a reserved key)."""

    status_code = 400


class StoreFailure(FeedlogError):
    """The underlying key-value store failed to read or write."""


class MalformedRecord(FeedlogError):
    """A stored value or request body could not be parsed as a JSON object."""


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        {"error": message},
        status_code=status_code,
        headers={"Access-Control-Allow-Origin": get_settings().cors_origin},
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(FeedlogError)
    async def handle_feedlog_error(request: Request, exc: FeedlogError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return error_response(exc.message, exc.status_code)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return error_response(str(exc), 500)
