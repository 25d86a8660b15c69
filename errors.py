import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class MarketError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketError):
    status_code = 400


class AuthError(MarketError):
    status_code = 401


class NotFoundError(MarketError):
    status_code = 404


class ConflictError(MarketError):
    status_code = 409


class DependencyError(MarketError):
    """A backing service (database, image store, payment gateway) failed."""
    status_code = 500


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MarketError)
    async def market_error_handler(request: Request, exc: MarketError):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request", "errors": jsonable_errors(exc)},
        )

    @app.exception_handler(PyMongoError)
    async def database_error_handler(request: Request, exc: PyMongoError):
        logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"message": "Database error"})


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
