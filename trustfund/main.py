from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional
import structlog
import time
import uvicorn

from trustfund.api.admin import router as admin_router
from trustfund.api.campaign import router as campaigns_router
from trustfund.api.donation import router as donations_router
from trustfund.api.moderation import router as moderation_router
from trustfund.api.public import router as public_router
from trustfund.context import AppContext
from trustfund.core.config import Settings, get_settings
from trustfund.core.errors import TrustFundError
from trustfund.core.logging import configure_logging
from trustfund.database.database import init_db, close_db
from trustfund.middleware.logging import logging_middleware
from trustfund.middleware.metrics import MetricsMiddleware, metrics_endpoint
from trustfund.middleware.tracing import init_tracing

logger = structlog.get_logger(__name__)


def _format_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        # Drop the leading "body" / "query" segment
        loc = [str(item) for item in error.get("loc", ())[1:]]
        field = ".".join(loc) if loc else "request"
        parts.append(f"{field}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(TrustFundError)
    async def domain_exception_handler(request: Request, exc: TrustFundError):
        if exc.status_code >= 500:
            logger.error("Request failed", error=exc.message, error_type=type(exc).__name__,
                         method=request.method, url=str(request.url))
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=422, content={"message": _format_validation_error(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            method=request.method,
            url=str(request.url)
        )
        return JSONResponse(status_code=500, content={"message": "Internal server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application and its context from ``settings``"""
    settings = settings or get_settings()
    configure_logging(settings)

    context = AppContext.build(settings)

    app = FastAPI(
        title=settings.app_name,
        description="TrustFund crowdfunding API: campaigns, donations and moderation",
        version="1.0.0",
        debug=settings.debug
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Must run before startup events
    init_tracing(app, settings, engine=context.engine)

    app.add_middleware(MetricsMiddleware)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Logging middleware with trace correlation"""
        return await logging_middleware(request, call_next)

    register_exception_handlers(app)

    @app.on_event("startup")
    async def startup_event():
        """Initialize application on startup"""
        logger.info("Starting TrustFund service", service_name=settings.service_name)

        init_db(context.engine, max_retries=settings.db_connect_retries, delay=settings.db_connect_delay)

        try:
            context.cache.init_redis()
        except Exception as redis_error:
            logger.warning("Failed to initialize Redis cache", error=str(redis_error))
            logger.info("Service will continue without cache")

        logger.info("Application startup completed successfully")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on application shutdown"""
        logger.info("Shutting down TrustFund service")
        context.cache.close()
        close_db(context.engine)

    @app.get("/health")
    async def health_check():
        """Basic health check"""
        return {
            "status": "healthy",
            "service": settings.service_name,
            "timestamp": time.time()
        }

    @app.get("/health/ready")
    async def readiness_check():
        """Readiness check with database, cache, and circuit breaker status"""
        health_status = {
            "status": "ready",
            "service": settings.service_name,
            "timestamp": time.time(),
            "database": "disconnected",
            "cache": "not_initialized",
            "circuit_breaker": context.breaker.get_state()
        }

        try:
            with context.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            health_status["database"] = "connected"
        except Exception as db_e:
            logger.warning("Database health check failed", error=str(db_e))
            health_status["database"] = f"error: {str(db_e)}"

        if context.cache.redis_client is not None:
            try:
                context.cache.ping()
                health_status["cache"] = "connected"
            except Exception as cache_e:
                logger.warning("Cache health check failed", error=str(cache_e))
                health_status["cache"] = f"error: {str(cache_e)}"

        if health_status["database"] != "connected":
            health_status["status"] = "not ready"
            return JSONResponse(status_code=503, content=health_status)
        return health_status

    @app.get("/metrics")
    async def metrics(request: Request):
        """Prometheus metrics endpoint"""
        return await metrics_endpoint(request)

    app.include_router(campaigns_router)
    app.include_router(donations_router)
    app.include_router(moderation_router)
    app.include_router(public_router)
    app.include_router(admin_router)

    return app


def run():
    """Serve the application with uvicorn"""
    settings = get_settings()
    uvicorn.run(
        "trustfund.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug"
    )


if __name__ == "__main__":
    run()
