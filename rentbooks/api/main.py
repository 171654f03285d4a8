import logging
import time
import uuid

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware

from rentbooks.api.routes_health import router as health_router
from rentbooks.api.routes_ledger import router as ledger_router
from rentbooks.api.routes_metrics import router as metrics_router
from rentbooks.api.routes_tax import router as tax_router
from rentbooks.core.config import settings
from rentbooks.core.errors import register_error_handlers
from rentbooks.core.logger import init_logging
from rentbooks.core.monitoring import init_monitoring

logger = logging.getLogger("rentbooks.requests")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag every response with a request id and log method, path, status and latency."""

    async def dispatch(self, request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "%s %s -> %s (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            extra={"request_id": request_id},
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):  # type: ignore[override]
        response = await call_next(request)
        # Ledger and tax figures must not be kept by shared caches
        response.headers.setdefault("Cache-Control", "no-store")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        return response


def create_app() -> FastAPI:
    init_logging()
    init_monitoring()

    docs_enabled = settings.ENV.lower() != "prod"
    app = FastAPI(
        title=f"{settings.APP_NAME} tax engine",
        debug=False,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)

    app.include_router(tax_router)
    app.include_router(ledger_router)
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(health_router)
    return app


app = create_app()
