"""
Grocito Delivery Policy Service — FastAPI Application

Delivery fee, partner earnings, bonus and cancellation-window policy for the
customer app and the delivery-partner portal, plus the cart and order flow
that applies it.
"""
import logging
import os
import re
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from routes import cart, delivery_fee, health, orders, partner, payments
from services.cart_store import InMemoryCartStore
from services.payment_service import build_payment_gateway

# ── Logging ─────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: validate settings, create DB tables. Shutdown: close the engine."""
    settings.validate_policy_settings()
    settings.validate_production_settings()

    from database import init_db, dispose_db
    await init_db()
    logger.info("Database initialized")
    logger.info(
        f"Delivery policy: free above ₹{settings.free_delivery_threshold}, "
        f"fee ₹{settings.delivery_fee}, bonus basis '{settings.bonus_time_basis}'"
    )

    yield  # app runs here

    await dispose_db()
    logger.info("Shutting down")


# ── App Factory ─────────────────────────────────────────────────────

app = FastAPI(
    title="Grocito Delivery Policy API",
    description="Delivery fees, partner earnings and order cancellation for Grocito",
    version="1.0.0",
    lifespan=lifespan,
)

# Per-app collaborators, shared by every request
app.state.payment_gateway = build_payment_gateway(settings)
app.state.memory_cart_store = InMemoryCartStore()

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routes ──────────────────────────────────────────────────────────

app.include_router(health.router)
app.include_router(delivery_fee.router)
app.include_router(cart.router)
app.include_router(orders.router)
app.include_router(payments.router)
app.include_router(partner.router)


# ── Exception Handler ───────────────────────────────────────────────


def _error_code(exc: Exception) -> str:
    """NotFoundError -> "not_found", InvalidAmountError -> "invalid_amount"."""
    name = exc.__class__.__name__
    if name.endswith("Error") and name != "Error":
        name = name[: -len("Error")]
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Catch-all for unhandled exceptions.

    Never return raw exception details to clients; the full traceback is
    logged server-side.
    """
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": "internal_server_error",
                "message": "Internal server error",
            },
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """
    Standardize HTTPException responses for frontend consumers.

    Keeps the original HTTP status code, but wraps the payload.
    """
    # DomainError carries structured error info
    if hasattr(exc, "message") and hasattr(exc, "details"):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": {
                    "code": _error_code(exc),
                    "message": exc.message,
                    "details": exc.details,
                },
            },
        )

    # Regular HTTPException
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {
                "code": "http_error",
                "message": message,
                "details": detail if not isinstance(detail, str) else None,
            },
        },
    )


# ── Entrypoint ──────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
