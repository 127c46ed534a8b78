from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from stockhub.core.config import settings
from stockhub.core.deps import get_db, get_ledgers
from stockhub.core.errors import StockHubError
from stockhub.core.observability import (
    http_exception_handler,
    request_logging_middleware,
    setup_observability,
    stockhub_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from stockhub.db.ledgers import LedgerRegistry
from stockhub.routers import boms, external_sync, notifications, outlets, sales_orders, transfer_orders


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.ledgers = LedgerRegistry.from_settings(settings)
    try:
        yield
    finally:
        app.state.ledgers.dispose()


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Multi-outlet inventory backend.\n\n"
        "Each outlet (Central Kitchen, Kuwait City, 360 Mall, Vibe Complex, Taiba Hospital) "
        "keeps its raw materials and finished goods in its own database. Transfer orders, "
        "sales orders, recipes and the external inventory mappings live in the central store."
    ),
    lifespan=lifespan,
    swagger_ui_parameters={
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "outlets", "description": "Outlet directory and per-outlet stock ledgers."},
        {"name": "boms", "description": "Recipes (bills of materials) and recipe expansion."},
        {"name": "transfer-orders", "description": "Inter-outlet stock transfer requests and approvals."},
        {"name": "sales-orders", "description": "Sales capture with stock consumption and invoicing."},
        {"name": "external-sync", "description": "Location and item mappings for the external inventory system."},
        {"name": "notifications", "description": "Per-outlet notification feed."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(StockHubError, stockhub_error_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["http://localhost:3000"]
allow_all_origins = "*" in cors_origins
env_value = settings.env.lower().strip()
allow_origin_regex = settings.cors_origin_regex

if (
    not allow_origin_regex
    and env_value in {"dev", "development", "staging", "stage"}
):
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(outlets.router)
app.include_router(boms.router)
app.include_router(transfer_orders.router)
app.include_router(transfer_orders.transfers_router)
app.include_router(sales_orders.router)
app.include_router(external_sync.router)
app.include_router(notifications.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready(
    db: Session = Depends(get_db),
    ledgers: LedgerRegistry = Depends(get_ledgers),
):
    try:
        db.execute(text("SELECT 1"))
        central_ok = True
    except Exception:
        central_ok = False
    outlet_status = {outlet.value: ok for outlet, ok in ledgers.ping().items()}
    return {
        "ok": central_ok and all(outlet_status.values()),
        "central": central_ok,
        "outlets": outlet_status,
    }
