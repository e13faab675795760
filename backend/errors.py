# backend/errors.py

import logging
import time
import traceback
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """Error codes returned in the `error.code` field of every failure."""

    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    SERVER_ERROR = "SERVER_ERROR"


STATUS_CODES = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INSUFFICIENT_STOCK: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.ALREADY_EXISTS: 400,
    ErrorCode.SERVER_ERROR: 500,
}


class StoreError(Exception):
    """Base exception for expected failures of the store API."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.context = context or {}
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return STATUS_CODES.get(self.code, 400)

    def to_response(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "context": self.context,
            }
        }


class NotFoundError(StoreError):
    def __init__(self, resource: str, resource_id: Optional[str] = None):
        context = {"resource": resource}
        if resource_id is not None:
            context["id"] = str(resource_id)
        super().__init__(ErrorCode.NOT_FOUND, f"{resource} not found", context)


class InsufficientStockError(StoreError):
    def __init__(
        self,
        product_id: str,
        available_stock: int,
        requested_quantity: int,
        product_name: Optional[str] = None,
        cart_quantity: Optional[int] = None,
    ):
        message = f"Insufficient stock for {product_name}" if product_name else "Insufficient stock"
        context = {
            "product_id": str(product_id),
            "available_stock": available_stock,
            "requested_quantity": requested_quantity,
        }
        if cart_quantity is not None:
            context["cart_quantity"] = cart_quantity
        self.available_stock = available_stock
        super().__init__(ErrorCode.INSUFFICIENT_STOCK, message, context)


class UnauthorizedError(StoreError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(ErrorCode.UNAUTHORIZED, message)


class ForbiddenError(StoreError):
    def __init__(self, message: str = "Not authorized"):
        super().__init__(ErrorCode.FORBIDDEN, message)


class InvalidRequestError(StoreError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, {"field": field} if field else None)


class AlreadyExistsError(StoreError):
    def __init__(self, message: str):
        super().__init__(ErrorCode.ALREADY_EXISTS, message)


class ServerError(StoreError):
    def __init__(self, message: str = "Server error"):
        super().__init__(ErrorCode.SERVER_ERROR, message)


def _server_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": {"code": ErrorCode.SERVER_ERROR.value, "message": "Server error"}},
    )


def setup_error_handlers(app: FastAPI):
    """Set up global error handlers for the FastAPI application."""

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "%s %s -> %s: %s %s",
            request.method,
            request.url.path,
            exc.code.value,
            exc.message,
            exc.context,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            errors.append({
                "field": " -> ".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            })
        logger.warning("Validation error on %s %s: %s", request.method, request.url.path, errors)
        return JSONResponse(
            status_code=422,
            content={
                "error": {
                    "code": ErrorCode.VALIDATION_ERROR.value,
                    "message": "Request validation failed",
                    "details": errors,
                }
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = f"Route not found: {request.method} {request.url.path}"
        else:
            message = exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": f"HTTP_{exc.status_code}", "message": message}},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(PyMongoError)
    async def database_error_handler(request: Request, exc: PyMongoError):
        # Store failures are never exposed to the client
        logger.error(
            "Database error on %s %s: %s: %s",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc,
        )
        return _server_error_response()

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception on %s %s: %s: %s\n%s",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc,
            traceback.format_exc(),
        )
        return _server_error_response()


async def request_logging_middleware(request: Request, call_next):
    """Tag every request with an id and log its outcome."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id
    started = time.perf_counter()

    response = await call_next(request)

    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s %s %.1fms rid=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request_id,
    )
    response.headers["X-Request-ID"] = request_id
    return response
