"""
FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import get_container
from api.middleware import LocaleMiddleware, LoggingMiddleware, RequestIDMiddleware
from api.routes import auth as auth_routes
from api.routes import bookings as booking_routes
from api.routes import certificates as certificate_routes
from api.routes import payments as payment_routes
from core.config import settings
from core.exceptions import register_exception_handlers
from core.i18n import t
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from infrastructure.database import create_tables


# configure logging at the entry point, not as an import side effect
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    # create tables only in development; production runs migrations
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    else:
        logger.info("database_migrations_required", message="Tables are not created automatically outside DEBUG")

    container = get_container()
    container.rate_limiter.start()
    logger.info(
        "rate_limiter_started",
        max_per_email=settings.rate_limit.max_requests_per_email,
        max_per_ip=settings.rate_limit.max_requests_per_ip,
        window_minutes=settings.rate_limit.window_minutes,
    )

    yield

    await container.rate_limiter.stop()
    await container.aclose()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Test bookings, certificate purchases and OTP login backed by Razorpay payments",
)

# middleware runs bottom-up: request id first, then logging, then locale
app.add_middleware(LocaleMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


app.include_router(booking_routes.router, prefix="/api/v1")
app.include_router(certificate_routes.router, prefix="/api/v1")
app.include_router(payment_routes.router, prefix="/api/v1")
app.include_router(auth_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc"
        },
        message=t("welcome", name=settings.PROJECT_NAME)
    )


@app.get("/health", tags=["Health"])
async def health_check():
    return success_response(data={"status": "healthy"}, message=t("health.ok"))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
