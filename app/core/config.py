import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./apply.db")

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# ✅ Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
WEBHOOK_TOLERANCE_SECONDS = int(os.getenv("WEBHOOK_TOLERANCE_SECONDS", "300"))

# Price IDs per tier and billing period
STRIPE_PRICE_ID_PRO_MONTHLY = os.getenv("STRIPE_PRICE_ID_PRO_MONTHLY")
STRIPE_PRICE_ID_PRO_YEARLY = os.getenv("STRIPE_PRICE_ID_PRO_YEARLY")
STRIPE_PRICE_ID_PREMIUM_MONTHLY = os.getenv("STRIPE_PRICE_ID_PREMIUM_MONTHLY")
STRIPE_PRICE_ID_PREMIUM_YEARLY = os.getenv("STRIPE_PRICE_ID_PREMIUM_YEARLY")

STRIPE_PRICE_IDS = {
    ("PRO", "MONTHLY"): STRIPE_PRICE_ID_PRO_MONTHLY,
    ("PRO", "YEARLY"): STRIPE_PRICE_ID_PRO_YEARLY,
    ("PREMIUM", "MONTHLY"): STRIPE_PRICE_ID_PREMIUM_MONTHLY,
    ("PREMIUM", "YEARLY"): STRIPE_PRICE_ID_PREMIUM_YEARLY,
}

# ✅ Checkout
TRIAL_PERIOD_DAYS = int(os.getenv("TRIAL_PERIOD_DAYS", "14"))
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
