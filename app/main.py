from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from datetime import timedelta

from fastapi import FastAPI


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Runs before any service or database connection is initialised.
    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - No empty-string values are accepted.
    - SQLite and local file database fallbacks are not permitted.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- APP_MODE -------------------------------------------------------
    app_mode = os.getenv("APP_MODE", "").strip().lower()
    if not app_mode:
        errors.append(
            "APP_MODE is not set. It must be explicitly set to 'cloud'."
        )
    elif app_mode != "cloud":
        errors.append(
            f"APP_MODE='{app_mode}' is not valid. Allowed values: ['cloud']."
        )

    # --- Database URL ---------------------------------------------------
    urls = [
        os.getenv(name, "").strip()
        for name in ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
    ]
    configured = [url for url in urls if url]
    if not configured:
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL "
            "or LOCAL_DATABASE_URL. SQLite and local database fallbacks are not permitted."
        )
    elif not all(url.startswith(("postgres://", "postgresql")) for url in configured):
        errors.append("Database URLs must point at PostgreSQL.")

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
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


async def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


async def _check_schema() -> None:
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

    async with get_engine().connect() as conn:
        actual: set[str] = set(
            await conn.run_sync(lambda sync_conn: sa_inspect(sync_conn).get_table_names())
        )
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
    Validate DB connectivity and schema, wire services and start the scheduler
    on boot; drain report tasks and release connections on exit.
    """
    from app.config import get_analytics_settings, get_report_settings
    from app.scheduler.jobs import build_scheduler
    from app.services.dashboard_service import DashboardService
    from app.services.report_service import ReportService
    from db.config import get_database_settings
    from db.repositories import (
        BoundedEntityStore,
        SQLAlchemyEntityStore,
        SQLAlchemyReportRepository,
    )
    from db.session import dispose_engine
    from reports.engine import ReportEngine
    from reports.executor import BoundedTaskExecutor

    log = logging.getLogger(__name__)
    started_at = time.monotonic()

    await _check_db()
    log.info("Database connectivity confirmed")
    await _check_schema()
    log.info("Database schema validated")

    report_settings = get_report_settings()
    # report job writes use the pool's overflow connections
    store = BoundedEntityStore(
        SQLAlchemyEntityStore(),
        max_concurrency=get_database_settings().pool_size,
    )
    repository = SQLAlchemyReportRepository()
    executor = BoundedTaskExecutor(max_concurrency=report_settings.max_concurrent_jobs)
    engine = ReportEngine(
        repository,
        store,
        row_limit=report_settings.detail_row_limit,
        error_max_length=report_settings.error_max_length,
    )
    report_service = ReportService(
        repository=repository,
        engine=engine,
        executor=executor,
        stale_after=timedelta(minutes=report_settings.stale_after_minutes),
    )
    application.state.report_service = report_service
    application.state.dashboard_service = DashboardService(
        store=store,
        settings=get_analytics_settings(),
        started_at=started_at,
    )

    scheduler = build_scheduler(report_service, report_settings)
    scheduler.start()
    log.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=False)
        log.info("Scheduler shut down")
        await executor.shutdown(timeout=report_settings.shutdown_timeout_seconds)
        await dispose_engine()
        log.info("Database engine disposed")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Proctoring Admin Console API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import dashboard_router, report_router

    application.include_router(dashboard_router)
    application.include_router(report_router)

    @application.get("/health")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
