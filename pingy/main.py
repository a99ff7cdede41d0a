"""
FastAPI Application Entry Point.
Initializes the FastAPI app with middleware, routes, the realtime gateway
and the notification pipeline.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from pingy.api.v1 import messages, push
from pingy.config import settings
from pingy.core.cache import cache
from pingy.core.database import AsyncSessionLocal, engine
from pingy.core.exceptions import PingyError
from pingy.core.presence import PresenceRegistry
from pingy.core.websocket import ConnectionManager
from pingy.services.notification_pipeline import NotificationPipeline
from pingy.services.push import APNsSender, WebPushSender

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# One registry per process, shared by the gateway and the pipeline
presence_registry = PresenceRegistry()
connection_manager = ConnectionManager(presence_registry, AsyncSessionLocal)


def build_pipeline() -> NotificationPipeline:
    """Create the notification pipeline with whichever push providers are configured."""
    web_push = WebPushSender.from_settings(settings)
    apns = APNsSender.from_settings(settings)

    logger.info(
        f"Push providers: web_push={'on' if web_push else 'off'}, apns={'on' if apns else 'off'}"
    )
    if settings.is_production and web_push is None and apns is None:
        logger.warning("No push provider configured - offline recipients will not be notified")
    return NotificationPipeline(
        AsyncSessionLocal,
        presence_registry,
        web_push=web_push,
        apns=apns,
        delivery_listener=connection_manager.emit_delivered,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    await cache.connect()
    pipeline = build_pipeline()
    connection_manager.pipeline = pipeline
    app.state.pipeline = pipeline
    yield
    # Shutdown
    await pipeline.aclose()
    await cache.disconnect()
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title="Pingy Messaging Server",
    description="Direct messaging backend with delivery receipts, reactions and push notifications",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Add rate limiter state and error handler
app.state.limiter = messages.limiter
app.state.connection_manager = connection_manager
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(PingyError)
async def pingy_error_handler(request: Request, exc: PingyError):
    """Map domain errors to {"detail": ...} responses."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# CORS Middleware
# Socket.IO handles CORS for the realtime transport itself
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health Check Endpoints
@app.get("/health", tags=["Health"])
async def health_check():
    """Basic health check endpoint."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "environment": settings.environment,
            "online_users": len(presence_registry.online_user_ids()),
        }
    )


@app.get("/health/ready", tags=["Health"])
async def readiness_check():
    """
    Readiness check endpoint.
    Verifies database and cache connectivity.
    """
    checks = {
        "database": False,
        "redis": "not_configured" if not settings.redis_url else False,
        "push": "configured" if settings.push_configured else "not_configured",
    }

    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
            checks["database"] = True
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Readiness database check failed: {e}")

    if settings.redis_url:
        checks["redis"] = await cache.ping()

    redis_ok = checks["redis"] == "not_configured" or checks["redis"] is True
    all_healthy = checks["database"] and redis_ok
    status_code = 200 if all_healthy else 503

    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_healthy else "not ready",
            "checks": checks,
        }
    )


# Include API routers
app.include_router(
    messages.router,
    prefix="/api/v1/messages",
    tags=["Messages"]
)

app.include_router(
    push.router,
    prefix="/api/v1/push",
    tags=["Push"]
)

# Save reference to FastAPI app (for testing)
fastapi_app = app

# Wrap FastAPI inside Socket.IO ASGIApp - this becomes the final ASGI app
app = connection_manager.get_asgi_app(fastapi_app)
