"""
Custom Exceptions

Every application error carries the HTTP status it maps to. The handlers
registered by ``setup_exception_handlers`` turn them into JSON bodies of the
form ``{"message": "..."}``.

    DeclutterError (500)
       ├── ValidationError (400)     missing or malformed request fields
       ├── MissingTokenError (401)   no Authorization header
       ├── InvalidTokenError (403)   bad signature, expired, or no identity claim
       ├── ForbiddenError (403)      authenticated but not the owner
       ├── NotFoundError (404)
       ├── ConflictError (409)       unique constraint violated
       ├── PayloadTooLargeError (413) request body over MAX_BODY_BYTES
       └── PersistenceError (500)    the store rejected or failed an operation
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from declutter_api.logging import logger


class DeclutterError(Exception):
    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message}


class ValidationError(DeclutterError):
    status_code = 400


class MissingTokenError(DeclutterError):
    status_code = 401

    def __init__(self, message: str = "Token missing") -> None:
        super().__init__(message)


class InvalidTokenError(DeclutterError):
    status_code = 403

    def __init__(self, message: str = "Token invalid") -> None:
        super().__init__(message)


class ForbiddenError(DeclutterError):
    status_code = 403


class NotFoundError(DeclutterError):
    status_code = 404


class ConflictError(DeclutterError):
    status_code = 409


class PayloadTooLargeError(DeclutterError):
    status_code = 413

    def __init__(self, message: str = "Request body too large") -> None:
        super().__init__(message)


class PersistenceError(DeclutterError):
    status_code = 500


def _field_path(loc: tuple) -> str:
    # drop the leading "body"/"path" marker FastAPI adds
    parts = [str(part) for part in loc[1:]] or [str(part) for part in loc]
    return ".".join(parts)


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DeclutterError)
    async def declutter_error_handler(request: Request, exc: DeclutterError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Request failed",
            error_type=type(exc).__name__,
            message=exc.message,
            status_code=exc.status_code,
            path=request.url.path,
            email=getattr(request.state, "email", None),
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted({_field_path(tuple(error["loc"])) for error in exc.errors()})
        logger.warning("Validation error", fields=fields, path=request.url.path)
        return JSONResponse(
            status_code=400,
            content={"message": "Missing or invalid fields", "fields": fields},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Anything unforeseen becomes a generic 500; the details only reach the log."""
        logger.error(
            "Unexpected error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(status_code=500, content={"message": "Internal server error"})
