"""
riskflow — FastAPI Application Entry Point

/v1/konteks/...                     → context, categories, scales, matrix
/v1/unit-kerja/{u}/risk-worksheets  → worksheets, assessments, items, mitigations
/v1/mitigations/pending             → reviewer queue
GET /v1/health                      → health check
GET /metrics                        → Prometheus
GET /docs                           → OpenAPI / Swagger UI
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from riskflow.api.context_endpoint import router as context_router
from riskflow.api.item_endpoint import review_router
from riskflow.api.item_endpoint import router as item_router
from riskflow.api.worksheet_endpoint import router as worksheet_router
from riskflow.core.config import get_settings
from riskflow.core.errors import (
    RiskflowError,
    integrity_error_handler,
    request_validation_handler,
    riskflow_error_handler,
    stale_data_handler,
)

VERSION = "1.0.0"

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.ConsoleRenderer() if get_settings().app_env == "development"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(get_settings().log_level),
)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("riskflow_starting", env=get_settings().app_env, auth_enabled=get_settings().auth_enabled)
    yield
    logger.info("riskflow_shutting_down")


app = FastAPI(
    title="riskflow",
    description="Risk matrix scoring and multi-stage approval workflow for unit risk registers",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (internal frontends) ──
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_methods=["POST", "GET", "PATCH", "DELETE"],
    allow_headers=["*"],
)

# ── Error mapping ──
app.add_exception_handler(RiskflowError, riskflow_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(StaleDataError, stale_data_handler)
app.add_exception_handler(IntegrityError, integrity_error_handler)

# ── Prometheus metrics ──
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── Routes ──
app.include_router(context_router)
app.include_router(worksheet_router)
app.include_router(item_router)
app.include_router(review_router)


@app.get("/v1/health", tags=["health"])
async def health():
    return {"status": "ok", "service": get_settings().app_name, "version": VERSION}


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": get_settings().app_name,
        "version": VERSION,
        "docs": "/docs",
    }
