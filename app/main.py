import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core import config
from app.core.errors import BillingError
from app.core.logging_config import setup_logging, sanitize_log_data

# ✅ Import API Routes
from app.api.routes import billing, health

setup_logging(log_level=config.LOG_LEVEL, log_dir=config.LOG_DIR)
logger = logging.getLogger(__name__)
_settings = sanitize_log_data({
    'database_url': config.DATABASE_URL,
    'stripe_secret_key': config.STRIPE_SECRET_KEY,
    'stripe_webhook_secret': config.STRIPE_WEBHOOK_SECRET,
    'frontend_url': config.FRONTEND_URL,
    'trial_period_days': config.TRIAL_PERIOD_DAYS,
})
logger.info(f"Starting with settings: {_settings}")


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Apply Subscriptions")

# ✅ CORS LOCKDOWN - ONLY ALLOW YOUR FRONTEND
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_URL,
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ ERROR RESPONSES
# ============================================

@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(billing.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "Apply subscriptions API running"}
