from sqlalchemy import text

from pharmastock.core.errors import StockCoreError
from pharmastock.core.observability import (
    http_exception_handler,
    request_logging_middleware,
    setup_observability,
    stock_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from pharmastock.core.config import settings
from pharmastock.db.session import engine
from pharmastock.routers import adjustments, inventory, notifications, purchase_orders, sales

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Stock reconciliation API for PharmaStock.\n\n"
        "Every endpoint that moves stock (`/sales`, `/purchase-orders/{id}/receive`, "
        "`/purchase-orders/{id}/status`, `/adjustments`, `/inventory/lots`) commits or rolls "
        "back as a whole. Threshold alerts are pushed on `/notifications/ws` after commit."
    ),
    swagger_ui_parameters={
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "sales", "description": "Sales capture, edits and deletion with stock restore."},
        {"name": "purchase-orders", "description": "Purchase orders and stock receiving."},
        {"name": "adjustments", "description": "Audited lot adjustments (damage, theft, expiry, corrections, returns)."},
        {"name": "inventory", "description": "Inventory lots and medicine stock levels."},
        {"name": "notifications", "description": "Threshold alerts, inventory sweeps and the alert push channel."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(StockCoreError, stock_error_handler)
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
    # Local dashboards run on dynamic localhost ports.
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sales.router)
app.include_router(purchase_orders.router)
app.include_router(adjustments.router)
app.include_router(inventory.router)
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
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        return {"ok": False}
    return {"ok": True}
