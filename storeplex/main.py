# storeplex/main.py
import sqlite3
from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging
from dotenv import load_dotenv
load_dotenv()

from .settings import settings
from .platform import build_platform
from .storage.sqlite_base import get_sqlite_db_connection, close_sqlite_db_connection
from .domains.middleware import DomainResolutionMiddleware
from .domains.endpoints import storefront_router, domains_admin_router
from .stores.endpoints import stores_router
from .credits.endpoints import credits_router, credits_admin_router

# Configure logging based on debug mode setting
if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level="DEBUG" if settings.debug_mode else "INFO",
        format='%(asctime)s - %(name)s [%(levelname)s] - %(message)s'
    )

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG if settings.debug_mode else logging.INFO)


@asynccontextmanager
async def storeplex_app_lifespan(app_instance: FastAPI):
    """
    Application lifespan manager: opens the master database, builds the
    platform services and starts the domain cache sweep; tears all of it down
    again on shutdown.
    """
    logger.info("Application startup initiated.")
    try:
        await get_sqlite_db_connection()
        logger.info("Master SQLite connection initialized.")
        # Fails fast when the vault key is missing or malformed
        platform = build_platform(settings)
        await platform.initialize()
    except Exception as e:
        logger.error(f"Error during application startup: {e}", exc_info=True)
        await close_sqlite_db_connection()
        raise

    app_instance.state.platform = platform
    logger.info("Application startup complete.")
    try:
        yield
    finally:
        logger.info("Application shutdown initiated.")
        try:
            await platform.shutdown()
        except Exception as e:
            logger.error(f"Error shutting down platform services: {e}", exc_info=True)
        app_instance.state.platform = None
        await close_sqlite_db_connection()
        logger.info("Application shutdown complete.")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug_mode,
        lifespan=storeplex_app_lifespan,
    )
    app.state.platform = None
    app.add_middleware(DomainResolutionMiddleware)

    app.include_router(stores_router)
    app.include_router(credits_router)
    app.include_router(credits_admin_router)
    app.include_router(domains_admin_router)
    app.include_router(storefront_router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Master database health and cache sizes."""
        platform = app.state.platform
        db_ok = True
        try:
            conn = await get_sqlite_db_connection()
            conn.execute("SELECT 1")
        except sqlite3.Error as e:
            logger.error(f"Health check: master database unavailable: {e}")
            db_ok = False
        return {
            "status": "ok" if db_ok and platform is not None else "degraded",
            "master_db": "ok" if db_ok else "unavailable",
            "cached_tenant_connections": len(platform.router) if platform else 0,
            "cached_domains": len(platform.domain_resolver) if platform else 0,
        }

    return app


app = create_app()
