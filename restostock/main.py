# restostock/main.py
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .coordinator import Clock, TransactionCoordinator
from .core.config import Settings, settings as default_settings
from .core.errors import StockError
from .core.logging_config import configure_logging, get_logger
from .db import create_db_engine, ping
from .routes import categories, dashboard, products, transactions

logger = get_logger("api")


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    msg = first.get("msg", "Invalid value")
    return f"{loc}: {msg}" if loc else msg


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    app.state.engine = engine or create_db_engine(settings)
    app.state.coordinator = TransactionCoordinator(
        app.state.engine,
        clock=clock,
        timeout=settings.DB_TIMEOUT_SECONDS,
        max_conflict_retries=settings.LEDGER_MAX_CONFLICT_RETRIES,
    )

    @app.exception_handler(StockError)
    async def handle_stock_error(request: Request, exc: StockError):
        if exc.status_code >= 500:
            logger.error("request_failed", extra={"path": request.url.path, "code": exc.code})
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.error, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Validation error",
                "message": _validation_message(exc),
            },
        )

    @app.get("/health")
    def health():
        body = {
            "app": settings.APP_NAME,
            "environment": settings.ENV,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            ping(app.state.engine)
        except SQLAlchemyError as exc:
            logger.warning("health_check_failed", exc_info=True)
            return JSONResponse(
                status_code=503,
                content={
                    "success": False,
                    "status": "unhealthy",
                    "services": {"database": "disconnected", "api": "operational"},
                    "error": exc.__class__.__name__,
                    **body,
                },
            )
        return {
            "success": True,
            "status": "healthy",
            "services": {"database": "connected", "api": "operational"},
            **body,
        }

    app.include_router(categories.router)
    app.include_router(products.router)
    app.include_router(transactions.router)
    app.include_router(dashboard.router)
    return app


app = create_app()
