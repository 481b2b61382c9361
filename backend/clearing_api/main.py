"""Clearing organization API -- FastAPI Application."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from sqlalchemy.exc import SQLAlchemyError

from clearing_api.config import settings
from clearing_api.database import async_engine, create_schema
from clearing_api.errors import register_exception_handlers
from clearing_api.rbac import CATALOG_VERSION

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting clearing organization API...")

    # Verify DB connection
    try:
        async with async_engine.begin() as conn:
            await conn.exec_driver_sql("SELECT 1")
        logger.info("Database connection verified")
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection failed: {e}")

    if settings.AUTO_CREATE_SCHEMA:
        await create_schema()
        logger.info("Database schema ensured")

    logger.info("Clearing organization API started (permission catalog %s)", CATALOG_VERSION)
    yield

    # Shutdown
    await async_engine.dispose()
    logger.info("Clearing organization API shut down")


app = FastAPI(
    title="Clearing Organization API",
    description="Organizations, desks and role-based access control for a clearing platform",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Import and register routers
from clearing_api.routes import organizations, roles, users

app.include_router(roles.router)
app.include_router(organizations.router)
app.include_router(users.router)


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "Clearing Organization API", "version": "1.0.0"}
