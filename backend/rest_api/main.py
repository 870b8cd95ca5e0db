"""
REST API main application.
Entry point for the FastAPI server.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config.settings import settings
from shared.config.logging import setup_logging, rest_api_logger as logger
from shared.infrastructure.redis import close_redis_pool
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from rest_api.dependencies import close_clients
from rest_api.routers.integrations import external_router, oauth_router
from rest_api.routers.public import health_router, products_router, webhooks_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    setup_logging()

    # Refuse to start in production with insecure configuration
    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        logger.warning("Running with insecure defaults (acceptable for development only)")

    logger.info("Starting REST API", port=settings.api_port, env=settings.environment)

    yield

    logger.info("Shutting down REST API")
    await close_clients()
    await close_redis_pool()


# Create FastAPI application
app = FastAPI(
    title="Product Catalog API",
    description="Cursor-paginated product catalog with cached reads and shared OAuth2 credentials",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Error envelope
# =============================================================================


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTP error as {"success": false, "message": ...}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Invalid query, path or body parameters are a 400, like any other bad input."""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    logger.warning("Request validation failed", path=request.url.path, errors=errors)
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation error", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


# =============================================================================
# Routers
# =============================================================================

app.include_router(health_router)
app.include_router(products_router)
app.include_router(oauth_router)
app.include_router(external_router)
app.include_router(webhooks_router)


@app.get("/")
def root():
    return {
        "success": True,
        "message": "Product Catalog API",
        "version": settings.api_version,
    }
