"""
FastAPI Application - Gatekeeper API
Authentication and session management service
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gatekeeper.config import settings
from gatekeeper.core.errors import register_exception_handlers
from gatekeeper.core.logging import configure_logging, get_logger
from gatekeeper.core.middleware import RequestContextMiddleware

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup and shutdown events"""
    # Startup
    logger.info(
        "api_starting",
        environment=settings.ENVIRONMENT,
        database=settings.DATABASE_URL.split("@")[1] if "@" in settings.DATABASE_URL else "configured",
    )
    yield
    # Shutdown
    from gatekeeper.core.database import engine

    await engine.dispose()
    logger.info("api_shutdown")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Registration, login, token rotation and session management",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint - API information"""
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint"""
    return {"status": "healthy"}


# Import and include routers
from gatekeeper.api.v1 import router as api_v1_router  # noqa: E402

app.include_router(api_v1_router, prefix=settings.API_V1_STR)
