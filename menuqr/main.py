"""
FastAPI Application Entry Point

MenuQR restaurant digital-menu API.
Mock services in development, SendGrid/Cloudinary otherwise.

Endpoints:
    - /api/auth:        registration, login, password reset
    - /api/menu:        dated menus and the current menu
    - /api/section:     menu sections
    - /api/dish:        dishes and dish images
    - /api/order:       clients, orders, kitchen and table views
    - /api/restaurant:  profile, logo, export/import, housekeeping
    - /api/statistics:  analytics and dish ratings
    - GET /health:      system health check
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import redis
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from menuqr.core.config import get_settings, setup_logging
from menuqr.core.errors import register_exception_handlers
from menuqr.database import engine, get_db, init_db
from menuqr.dependencies import get_email_service, get_image_host
from menuqr.routes import auth, dish, menu, order, restaurant, section, statistics
from menuqr.schemas import HealthResponse
from menuqr.services.email import BaseEmailService
from menuqr.services.storage import BaseImageHost

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("Database initialized")

    logger.info(f"Email Service: {get_email_service().provider_name}")
    logger.info(f"Image Host: {get_image_host().provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    logger.info("Application ready")

    yield

    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant digital-menu backend: menus, dishes, QR ordering, "
        "kitchen views and analytics."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(menu.router, prefix="/api/menu", tags=["Menu"])
app.include_router(section.router, prefix="/api/section", tags=["Section"])
app.include_router(dish.router, prefix="/api/dish", tags=["Dish"])
app.include_router(order.router, prefix="/api/order", tags=["Order"])
app.include_router(restaurant.router, prefix="/api/restaurant", tags=["Restaurant"])
app.include_router(statistics.router, prefix="/api/statistics", tags=["Statistics"])


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, Any]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
        "current_menu": "/api/menu/current",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    email_service: BaseEmailService = Depends(get_email_service),
    image_host: BaseImageHost = Depends(get_image_host),
) -> HealthResponse:
    """Verify all system components are operational."""

    db_status = "healthy"
    try:
        await db.execute(select(1))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except Exception as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    email_status = "healthy" if await email_service.health_check() else "unhealthy"
    image_status = "healthy" if await image_host.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, redis_status, email_status, image_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        email_service=email_status,
        image_host=image_status,
        timestamp=datetime.now(),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "menuqr.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
