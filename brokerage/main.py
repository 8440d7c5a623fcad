# ruff: noqa: I001

import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError

from brokerage import models
from brokerage.api.router import api_router
from brokerage.config import settings
from brokerage.core.observability import (
    cascade_error_handler,
    global_exception_handler,
    request_logging_middleware,
    uptime_seconds,
    utc_now_iso,
)
from brokerage.core.security import hash_password
from brokerage.database import POOL_CONFIG, SessionLocal, engine
from brokerage.services.lifecycle_events import CascadeError

api_prefix = (
    settings.api_prefix
    if settings.api_prefix.startswith("/")
    else f"/{settings.api_prefix}"
    if settings.api_prefix
    else ""
)

logger = logging.getLogger("brokerage")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(
    title=settings.app_name,
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    openapi_url=(f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
    if settings.enable_docs
    else None,
)

# Expose logger and CORS origins for middleware/handlers without circular imports.
app.state.logger = logger
app.state.settings_cors_origins = settings.cors_origins

# Quotation saved, firm order not: a dedicated payload so clients can retry the reconciliation.
app.add_exception_handler(CascadeError, cascade_error_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Request-level logging + request correlation id.
app.middleware("http")(request_logging_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=api_prefix)


def _run_migrations_if_configured() -> None:
    if not bool(getattr(settings, "run_migrations_on_start", False)):
        return

    if (settings.environment or "").lower() == "test":
        return

    # Import lazily to keep import graph light for non-migration startups.
    from alembic import command
    from alembic.config import Config
    from sqlalchemy import create_engine, text
    from sqlalchemy.engine.url import make_url

    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))

    try:
        url_obj = make_url(str(settings.database_url))
        logger.info(
            "migrations_db_target driver=%s host=%s port=%s db=%s user=%s has_password=%s",
            url_obj.drivername,
            url_obj.host,
            url_obj.port,
            url_obj.database,
            url_obj.username,
            bool(url_obj.password),
        )
    except Exception as e:
        logger.warning("migrations_db_target_parse_failed error=%s", str(e))

    try:
        db_engine = create_engine(settings.database_url, future=True)
        with db_engine.connect() as connection:
            dialect = str(connection.dialect.name or "").lower()

            # Avoid concurrent migrations across multiple instances.
            lock_acquired = True
            if dialect == "postgresql":
                try:
                    lock_acquired = bool(
                        connection.execute(
                            text("select pg_try_advisory_lock(:k)"), {"k": 52710934}
                        ).scalar()
                    )
                except Exception as e:
                    logger.warning("migrations_lock_failed", extra={"error": str(e)})
                    lock_acquired = True

            if not lock_acquired:
                logger.info("migrations_skipped_lock_not_acquired")
                return

            try:
                # Reused inside alembic/env.py via config.attributes['connection'].
                alembic_cfg.attributes["connection"] = connection
                command.upgrade(alembic_cfg, "head")
                logger.info("migrations_applied")
            finally:
                if dialect == "postgresql":
                    try:
                        connection.execute(text("select pg_advisory_unlock(:k)"), {"k": 52710934})
                        connection.commit()
                    except Exception as e:
                        logger.warning("migrations_unlock_failed", extra={"error": str(e)})
    except Exception as e:
        # Don't crash the API if migrations fail; endpoints that need the DB will surface it.
        logger.error("migrations_failed error=%s", str(e))
        return


_DEV_USERS = [
    ("admin@brokerage.local", "Admin", models.Department.marine, models.RoleName.admin),
    ("marine@brokerage.dev", "Marine Desk", models.Department.marine, models.RoleName.staff),
    (
        "pe@brokerage.dev",
        "Property & Engineering Desk",
        models.Department.property_engineering,
        models.RoleName.staff,
    ),
    (
        "lf@brokerage.dev",
        "Liability & Financial Desk",
        models.Department.liability_financial,
        models.RoleName.staff,
    ),
]


def _seed_dev_users() -> None:
    env = str(settings.environment or "dev").lower()
    if env in {"prod", "production", "test"} or not settings.seed_dev_users:
        return

    db = SessionLocal()
    try:
        for email, name, department, role in _DEV_USERS:
            existing = db.query(models.User).filter(models.User.email == email).first()
            if existing:
                continue
            db.add(
                models.User(
                    email=email,
                    name=name,
                    hashed_password=hash_password("123456"),
                    department=department,
                    role=role,
                    active=True,
                )
            )
        db.commit()
    except OperationalError as e:
        # Database not ready yet (e.g., missing tables) - don't block startup.
        logger.warning("dev_user_seed_failed", extra={"error": str(e)})
        db.rollback()
    finally:
        db.close()


@app.on_event("startup")
def _startup():
    pool_status = None
    try:
        pool_status = engine.pool.status()
    except Exception:
        pool_status = None

    logger.info(
        "runtime_config",
        extra={
            "pid": os.getpid(),
            "web_concurrency": os.getenv("WEB_CONCURRENCY"),
            "uvicorn_workers": os.getenv("UVICORN_WORKERS"),
            "db_pool": POOL_CONFIG,
            "db_pool_status": pool_status,
        },
    )
    _run_migrations_if_configured()
    _seed_dev_users()


@app.get("/", tags=["meta"])
def root():
    docs_path = (
        (f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
        if settings.enable_docs
        else None
    )
    return {"message": settings.app_name, "docs": docs_path}


@app.get("/health", tags=["meta"])
@app.get("/healthz", tags=["meta"])
def healthcheck():
    """Liveness probe.

    Keep payload stable for monitoring systems.
    """

    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "time": utc_now_iso(),
        "uptime_seconds": round(uptime_seconds(), 2),
        "version": settings.build_version,
    }
