"""
FastAPI application entry point.

Read-only views over stored bars and indicators, plus on-demand recompute.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from trendwatch.core.config import settings
from trendwatch.core.exceptions import StoreUnavailable
from trendwatch.core.logging import setup_logging
from trendwatch.core.database import close_db
from trendwatch.core.redis import close_redis

# Setup logging
setup_logging()

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Daily moving-average indicators and trading signals",
    debug=settings.DEBUG,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": f"Store unavailable: {exc}"})


@app.on_event("shutdown")
async def shutdown() -> None:
    """Run on application shutdown."""
    await close_db()
    await close_redis()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }


from trendwatch.api.bars import router as bars_router
from trendwatch.api.indicators import router as indicators_router
from trendwatch.api.market import router as market_router

app.include_router(bars_router, prefix="/api/v1", tags=["bars"])
app.include_router(indicators_router, prefix="/api/v1/indicators", tags=["indicators"])
app.include_router(market_router, prefix="/api/v1/market", tags=["market"])
