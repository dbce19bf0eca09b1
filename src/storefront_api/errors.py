import logging

import psycopg2
import psycopg2.errors
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)


def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters are client errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def integrity_error_handler(request: Request, exc: psycopg2.IntegrityError) -> JSONResponse:
    """Constraint violations reported by the store."""
    logger.info("Constraint violation on %s %s: %s", request.method, request.url.path, exc.pgerror)
    if isinstance(exc, psycopg2.errors.UniqueViolation):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": "Resource already exists"})
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "Invalid data for this resource"})


def store_error_handler(request: Request, exc: psycopg2.Error) -> JSONResponse:
    """Any other database failure, including pool checkout errors."""
    logger.error("Store error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# PUBLIC_INTERFACE
def register_exception_handlers(app: FastAPI) -> None:
    """Map validation and store exceptions to HTTP responses."""
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(psycopg2.IntegrityError, integrity_error_handler)
    # PoolError derives from psycopg2.Error.
    app.add_exception_handler(psycopg2.Error, store_error_handler)
