import logging
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from inventory_app.core.errors import AppError

log = logging.getLogger(__name__)


# Generate a clean request id for every response
def _rid():
    """Generates a unique request ID for tracing."""
    return uuid.uuid4().hex


def _error_body(code: str, message, details=None):
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error, "request_id": _rid()}


# ----------- Exception Handlers (called by FastAPI) -----------

def app_error_handler(request: Request, exc: AppError):
    """Handles the application's own error taxonomy; the error carries its status code."""
    if exc.status_code >= 500:
        log.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        log.info(f"{exc.code} on {request.url.path}: {exc.message}")
    body = _error_body(exc.code, exc.message, jsonable_encoder(exc.details))
    return JSONResponse(status_code=exc.status_code, content=body)


def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404, 400)."""
    return JSONResponse(status_code=exc.status_code, content=_error_body("http_error", exc.detail))


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles request body/query validation errors as a client error."""
    body = _error_body("validation_error", "Invalid input data", jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=400, content=body)


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    log.exception(f"Unhandled exception on path: {request.url.path}")
    return JSONResponse(status_code=500, content=_error_body("server_error", "Internal Server Error"))


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app
