"""Deal tax FastAPI application."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dealtax.api.health import router as health_router
from dealtax.api.tax import router as tax_router
from dealtax.config import settings
from dealtax.engine.errors import DealTaxError
from dealtax.utils.cache import TTLCache

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Deal Tax - Vehicle Sales Tax and Financing Engine",
    description="Jurisdiction-specific sales tax, fees and payment figures for vehicle deals",
    version=settings.engine_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.calculation_cache = TTLCache(
    settings.calculation_cache_ttl_seconds, maxsize=settings.calculation_cache_maxsize
)
app.state.jurisdiction_cache = TTLCache(settings.jurisdiction_cache_ttl_seconds)

app.include_router(health_router, tags=["Health"])
app.include_router(tax_router, prefix="/v1/tax", tags=["Tax"])


@app.exception_handler(DealTaxError)
async def deal_tax_error_handler(request: Request, exc: DealTaxError):
    """Engine errors carry their own code and HTTP status."""
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"code": exc.code, "detail": exc.message})


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "dealtax", "version": settings.engine_version, "docs": "/docs"}
