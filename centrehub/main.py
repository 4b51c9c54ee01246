import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import inspect
import structlog

from .config import settings
from .db import Base, engine, SessionLocal
from .logging import setup_logging, RequestIdMiddleware
from .auth.router import router as auth_router
from .routes.analytics import router as analytics_router
from .routes.categories import router as categories_router, seed_default_categories
from .routes.expenses import router as expenses_router
from .routes.files import router as files_router
from .routes.inventory import router as inventory_router


logger = structlog.get_logger(__name__)


def init_db() -> None:
    """Create missing tables and seed the default category catalogue."""
    existing_tables = set(inspect(engine).get_table_names())
    missing = set(Base.metadata.tables.keys()) - existing_tables
    if missing:
        logger.info("db_creating_tables", tables=sorted(missing))
        Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        added = seed_default_categories(db)
        if added:
            logger.info("categories_seeded", rows=added)
    finally:
        db.close()


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Routers
    app.include_router(auth_router)
    app.include_router(categories_router)
    app.include_router(expenses_router)
    app.include_router(inventory_router)
    app.include_router(files_router)
    app.include_router(analytics_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            init_db()
        logger.info("startup_complete", storage="blob" if settings.azure_blob_connection else "local")

    @app.get("/health")
    def health():
        return {"status": "ok", "centres": settings.centres}

    return app


app = create_app()
