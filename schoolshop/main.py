import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from schoolshop.config import settings
from schoolshop.db.base import engine, is_query_timeout
from schoolshop.errors import ServiceError, UpstreamTimeoutError
from schoolshop.services.media_storage import MediaStorageConfigurationError
from schoolshop.routers import lead_configs, products, shopify

logger = logging.getLogger(__name__)


def _is_schema_mismatch_programming_error(exc: ProgrammingError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "42703":
        return True
    message = str(orig or exc).lower()
    return any(
        marker in message
        for marker in (
            "undefined column",
            "does not exist",
            "no such column",
        )
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Schoolshop Back Office API",
        default_response_class=ORJSONResponse,
    )

    allow_origins = sorted(set(settings.cors_origins))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(_request: Request, exc: ServiceError) -> ORJSONResponse:
        if exc.status_code >= 500:
            logger.warning("Service error", extra={"code": exc.code, "detail": exc.message})
        return ORJSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(MediaStorageConfigurationError)
    async def media_storage_configuration_error_handler(
        _request: Request, exc: MediaStorageConfigurationError
    ) -> ORJSONResponse:
        return ORJSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(ProgrammingError)
    async def programming_error_handler(_request: Request, exc: ProgrammingError) -> ORJSONResponse:
        logger.exception("Database programming error", exc_info=exc)
        if _is_schema_mismatch_programming_error(exc):
            return ORJSONResponse(
                status_code=503,
                content={
                    "detail": "Database schema is out of date. Run `alembic upgrade head` and redeploy."
                },
            )
        return ORJSONResponse(status_code=500, content={"detail": "Database query failed."})

    @app.exception_handler(OperationalError)
    async def operational_error_handler(_request: Request, exc: OperationalError) -> ORJSONResponse:
        if is_query_timeout(exc):
            logger.warning("Database query timed out", extra={"error": str(exc.orig or exc)})
            timeout = UpstreamTimeoutError(message="Database query timed out")
            return ORJSONResponse(status_code=timeout.status_code, content=timeout.to_payload())
        logger.exception("Database operational error", exc_info=exc)
        return ORJSONResponse(status_code=503, content={"detail": "Database unavailable."})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as exc:  # pragma: no cover - simple runtime check
            return {"db": f"error: {exc}"}

    app.include_router(lead_configs.router)
    app.include_router(products.router)
    app.include_router(shopify.router)

    return app


app = create_app()
