import logging
import sys
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import get_token_issuer, get_token_validator
from api.errors import register_exception_handlers
from api.routes import auth, orders, users
from config import AppMode, get_settings
from db.database import database
from middleware.security import SecurityHeadersMiddleware
from schemas.common import HealthResponse
from services import cleanup

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Silence noisy loggers
logging.getLogger("aiosqlite").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown."""
    logger.info(f"Starting Storefront API in {settings.APP_MODE.value} mode...")

    # Misconfigured signing secrets fail the boot, not the first login
    get_token_issuer()
    get_token_validator()

    await database.init()

    # Periodic refresh token cleanup (skipped during pytest)
    if "pytest" not in sys.modules:
        cleanup.start_cleanup_task()

    yield

    if "pytest" not in sys.modules:
        await cleanup.stop_cleanup_task()
    await database.dispose()
    logger.info("Shutting down Storefront API...")


app = FastAPI(
    title="Storefront API",
    description="Storefront authentication, sessions and account access",
    version="1.0.0",
    lifespan=lifespan,
    debug=(settings.APP_MODE == AppMode.DEV and settings.DEBUG),
)

register_exception_handlers(app)

# Middlewares (order matters - first added = last executed)
# 1. Security headers on every response
app.add_middleware(SecurityHeadersMiddleware)

# 2. Request logging (development only)
if settings.APP_MODE == AppMode.DEV:
    from middleware.logging import RequestLoggingMiddleware, configure_request_logging
    configure_request_logging(settings.LOG_LEVEL)
    app.add_middleware(RequestLoggingMiddleware)

# 3. CORS middleware - must be last (first to process incoming requests)
# Auth rides on cookies, so credentials are only allowed for explicit origins
allow_credentials = "*" not in settings.CORS_ORIGINS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API Routes - versioned under /api/v1/
api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(auth.router)
api_v1_router.include_router(users.router)
api_v1_router.include_router(orders.router)
app.include_router(api_v1_router)

# Storefront clients call /api/auth/... directly
api_compat_router = APIRouter(prefix="/api", deprecated=True)
api_compat_router.include_router(auth.router)
api_compat_router.include_router(users.router)
api_compat_router.include_router(orders.router)
app.include_router(api_compat_router)


@app.get("/")
async def root():
    return {
        "name": "Storefront API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness probe."""
    return HealthResponse(status="healthy")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=(settings.APP_MODE == AppMode.DEV),
    )
