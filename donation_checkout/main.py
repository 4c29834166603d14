from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog
import time
import uvicorn

from donation_checkout.core.config import get_settings
from donation_checkout.core.logging import configure_logging
from donation_checkout.database.database import init_db, close_db, ping_db
from donation_checkout.api.checkout import router as checkout_router
from donation_checkout.api.donation import router as donations_router
from donation_checkout.api.notification import router as notifications_router
from donation_checkout.middleware.metrics import MetricsMiddleware, metrics_endpoint
from donation_checkout.middleware.logging import logging_middleware

settings = get_settings()
configure_logging(settings)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown"""
    logger.info("Starting Donation Checkout", service_name=settings.service_name)
    if not settings.midtrans_server_key:
        logger.warning("MIDTRANS_SERVER_KEY is not set; /checkout will answer 500")

    if settings.auto_create_tables:
        await init_db()

    yield

    logger.info("Shutting down Donation Checkout")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Donation checkout: Midtrans relay, payment notifications and status reconciliation",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["POST", "OPTIONS", "GET"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.add_middleware(MetricsMiddleware)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    return await logging_middleware(request, call_next)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        method=request.method,
        url=str(request.url)
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


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
    """Readiness check with database connectivity"""
    try:
        await ping_db()
        return {
            "status": "ready",
            "service": settings.service_name,
            "database": "connected",
            "timestamp": time.time()
        }
    except Exception as e:
        logger.error("Readiness check failed", error=str(e))
        return JSONResponse(
            status_code=503,
            content={
                "status": "not ready",
                "service": settings.service_name,
                "database": "disconnected",
                "timestamp": time.time()
            }
        )


@app.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics endpoint"""
    return await metrics_endpoint(request)


app.include_router(checkout_router)
app.include_router(donations_router)
app.include_router(notifications_router)


if __name__ == "__main__":
    uvicorn.run(
        "donation_checkout.main:app",
        host="0.0.0.0",
        port=8004,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug"
    )
