# restostock/db.py
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from .core.config import Settings
from .core.logging_config import get_logger

logger = get_logger("db")


def create_db_engine(settings: Settings) -> Engine:
    """Build the single process-wide engine. Connections are opened lazily."""
    kwargs = dict(future=True, pool_pre_ping=True, echo=settings.DB_ECHO)
    if settings.is_sqlite:
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.DB_TIMEOUT_SECONDS,
        }
    else:
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_TIMEOUT_SECONDS,
        )

    engine = create_engine(settings.DATABASE_URL, **kwargs)
    logger.info(
        "engine_created",
        extra={"dialect": engine.dialect.name, "timeout_s": settings.DB_TIMEOUT_SECONDS},
    )
    return engine


def apply_statement_timeout(conn: Connection, seconds: float) -> None:
    """Bound every statement of the current transaction. Postgres only."""
    if conn.dialect.name == "postgresql":
        conn.execute(
            text("select set_config('statement_timeout', :ms, true)"),
            {"ms": str(int(seconds * 1000))},
        )


def ping(engine: Engine) -> None:
    with engine.connect() as conn:
        conn.execute(text("select 1"))
