import logging
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from rentbooks.core.exceptions import PersistenceUnavailableError, RentBooksException

logger = logging.getLogger("rentbooks.errors")


def register_error_handlers(app):
    @app.exception_handler(RentBooksException)
    async def domain_exception(request: Request, exc: RentBooksException):
        logger.info("Rejected %s %s: %s (%s)", request.method, request.url.path, exc.message, exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(SQLAlchemyError)
    async def persistence_exception(request: Request, exc: SQLAlchemyError):
        correlation_id = uuid.uuid4().hex
        logger.exception("Persistence failure cid=%s path=%s method=%s", correlation_id, request.url.path, request.method)
        error = PersistenceUnavailableError(reason=type(exc).__name__)
        body = error.to_dict()
        body["cid"] = correlation_id
        return JSONResponse(status_code=error.status_code, content=body)

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):  # noqa: BLE001
        correlation_id = uuid.uuid4().hex
        logger.exception("Unhandled error cid=%s path=%s method=%s", correlation_id, request.url.path, request.method)
        return JSONResponse(status_code=500, content={"detail": "Internal server error", "cid": correlation_id})

    return app
