"""
Settlement Engine API - Main Application.

Serves the back office: cutoff window, orders and settlement, payments and
balances, reports and statements. All business routes live under /api/v1.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.routers import cutoff, orders, payments, reports
from services.config import get_settings

API_PREFIX = "/api/v1"

app = FastAPI(
    title="Settlement Engine API",
    description="Order settlement, ledgers and receivable/payable balances for the distribution back office",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# The back-office frontend is served from a separate origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cutoff.router, prefix=API_PREFIX, tags=["Cutoff"])
app.include_router(orders.router, prefix=API_PREFIX, tags=["Orders"])
app.include_router(payments.router, prefix=API_PREFIX, tags=["Payments"])
app.include_router(reports.router, prefix=API_PREFIX, tags=["Reports"])


@app.get("/health", tags=["Health"])
@app.get(f"{API_PREFIX}/health", tags=["Health"])
def health_check():
    """
    Liveness plus the engine settings that decide numbering and balances:
    the store backend, the business timezone used for document dates and
    whether over-collection is allowed.
    """
    settings = get_settings()
    return {
        "status": "healthy",
        "version": __version__,
        "store_backend": settings.store_backend,
        "business_timezone": str(settings.business_timezone),
        "allow_negative_balance": settings.allow_negative_balance,
    }


@app.get("/", tags=["Root"])
def root():
    """Entry points of the back-office API."""
    return {
        "service": "Settlement Engine API",
        "version": __version__,
        "cutoff": f"{API_PREFIX}/cutoff",
        "orders": f"{API_PREFIX}/orders",
        "payments": f"{API_PREFIX}/payments",
        "accounts": f"{API_PREFIX}/accounts/{{side}}",
        "reports": f"{API_PREFIX}/reports/orders",
        "docs": "/docs",
    }
