from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Runs before any service, browser or database connection is initialised.
    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - A PostgreSQL database URL must be configured.
    - Numeric ingestion settings, when set, must parse and be positive.
    - The portal config file, when overridden, must exist.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    database_url = os.getenv("DATABASE_URL", "").strip()
    cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    if not database_url and not cloud_database_url:
        errors.append(
            "No database URL configured. Set DATABASE_URL or CLOUD_DATABASE_URL. "
            "SQLite and local database fallbacks are not permitted."
        )

    # --- Ingestion numerics ---------------------------------------------
    for name in (
        "INGESTION_POOL_MAX_SESSIONS",
        "INGESTION_ACQUIRE_TIMEOUT_SECONDS",
        "INGESTION_NAVIGATION_TIMEOUT_SECONDS",
        "INGESTION_CONTENT_WAIT_TIMEOUT_SECONDS",
        "INGESTION_RETAIL_MARKUP",
        "INGESTION_RESELLER_MARKUP",
    ):
        raw = os.getenv(name, "").strip()
        if not raw:
            continue
        try:
            value = float(raw)
        except ValueError:
            errors.append(f"{name}='{raw}' is not a number.")
            continue
        if value <= 0:
            errors.append(f"{name}='{raw}' must be positive.")

    # --- Portal config --------------------------------------------------
    config_path = os.getenv("INGESTION_PORTALS_CONFIG_PATH", "").strip()
    if config_path and not os.path.isfile(config_path):
        errors.append(f"INGESTION_PORTALS_CONFIG_PATH='{config_path}' does not exist.")

    if errors:
        raise RuntimeError(
            "Startup validation failed. Missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Every table registered on Base.metadata must exist in the database.
    If any are missing, log a critical error and abort startup so that
    the operator is forced to run migrations before serving traffic.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """
    Validate the DB, create the session pool and start the scheduler on boot.

    On exit the scheduler stops first so no new run starts, then the pool
    destroys every browser session.
    """
    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")

    from app.ingestion.browser import ChromeSessionFactory, SessionPool
    from app.ingestion.config import get_ingestion_settings
    from app.scheduler.jobs import build_scheduler

    settings = get_ingestion_settings()
    pool = SessionPool(
        driver_factory=ChromeSessionFactory(settings),
        max_sessions=settings.max_sessions,
        probe_timeout_seconds=settings.probe_timeout_seconds,
        max_session_age_seconds=settings.max_session_age_seconds,
        max_session_uses=settings.max_session_uses,
    )
    application.state.session_pool = pool
    logging.getLogger(__name__).info("Session pool ready (max_sessions=%d)", pool.max_sessions)

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = build_scheduler(pool, settings)
        scheduler.start()
        logging.getLogger(__name__).info(
            "Scheduler started with %d jobs", len(scheduler.get_jobs())
        )
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logging.getLogger(__name__).info("Scheduler shut down")
        pool.shutdown()
        logging.getLogger(__name__).info("Session pool shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Portal Catalog Ingestion API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import catalog_router, ingestion_router

    application.include_router(ingestion_router)
    application.include_router(catalog_router)

    @application.get("/health")
    def healthcheck() -> dict[str, object]:
        pool = getattr(application.state, "session_pool", None)
        return {
            "status": "ok",
            "session_pool": pool.stats() if pool is not None else None,
        }

    return application


app = create_app()
