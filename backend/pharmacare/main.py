"""
PharmaCare Backend: prescription-to-order fulfillment.

ARCHITECTURE:
- FastAPI Backend: workflow rules, stock reservation, persistence
- SQLite (or any SQLAlchemy URL): source of truth for all state
- Next.js storefront and dashboards: thin clients over this API

WORKFLOW:
- Customer uploads prescription -> pharmacist verifies -> approves / rejects
- Pharmacist assembles a draft order from an approved prescription
- Customer adjusts the draft, then pays -> order confirmed and locked
- Admin moves confirmed orders through shipping and delivery
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from pharmacare.api.routes import auth, cart, orders, payments, prescriptions, products, reminders
from pharmacare.core.config import settings
from pharmacare.core.exceptions import PharmacyError, pharmacy_error_handler, unhandled_error_handler
from pharmacare.core.rate_limiter import RateLimitMiddleware
from pharmacare.db.init_db import init_db
from pharmacare.reminders.scheduler import start_reminder_scheduler, stop_reminder_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    1. Initialize database tables (and the first admin account)
    2. Start the reminder scanner

    Shutdown:
    1. Stop the reminder scanner
    """
    logger.info("[*] Initializing database...")
    init_db()
    logger.info("[OK] Database initialized")

    if settings.REMINDER_SCHEDULER_ENABLED:
        start_reminder_scheduler()
    else:
        logger.warning("[WARN] Reminder scheduler disabled")

    yield

    if settings.REMINDER_SCHEDULER_ENABLED:
        stop_reminder_scheduler()


app = FastAPI(
    title="PharmaCare API",
    description="Prescription review, order assembly, customization and payment confirmation.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_exception_handler(PharmacyError, pharmacy_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

# SECURITY: Trust only specific hosts
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# SECURITY: Restrict CORS to specific methods and headers (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
    ],
    max_age=600,
    expose_headers=["Content-Type"],
)

# SECURITY: Rate limiting to prevent brute force and DoS attacks
app.add_middleware(RateLimitMiddleware)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(products.router, prefix="/products", tags=["products"])
app.include_router(prescriptions.router, prefix="/prescriptions", tags=["prescriptions"])
app.include_router(orders.router, prefix="/orders", tags=["orders"])
app.include_router(payments.router, prefix="/payments", tags=["payments"])
app.include_router(reminders.router, prefix="/reminders", tags=["reminders"])
app.include_router(cart.router, prefix="/cart", tags=["cart"])


@app.get("/health")
def health():
    return {"status": "ok", "reminder_scheduler": settings.REMINDER_SCHEDULER_ENABLED}
