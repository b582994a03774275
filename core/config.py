from datetime import timedelta
import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name, default):
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


def _env_float(name, default):
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else default


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    APP_ENV = os.environ.get("APP_ENV", "production")
    PORT = _env_int("PORT", 5000)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    SHOW_ERROR_DETAILS = _env_bool("SHOW_ERROR_DETAILS", APP_ENV == "development")

    # Supabase exposes a plain Postgres connection string; all data access goes through it
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    SUPABASE_URL = os.environ.get("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY") or os.environ.get("JWT_SECRET")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=_env_int("JWT_EXPIRES_HOURS", 24))

    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",") if o.strip()]

    MAIL_SERVER = os.environ.get("EMAIL_HOST")
    MAIL_PORT = _env_int("EMAIL_PORT", 587)
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.environ.get("EMAIL_USER")
    MAIL_PASSWORD = os.environ.get("EMAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("EMAIL_FROM") or os.environ.get("EMAIL_USER") or "noreply@fastshop.local"

    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_API_BASE = "https://api.stripe.com/v1"
    STRIPE_WEBHOOK_TOLERANCE = 300  # seconds
    CURRENCY = os.environ.get("CURRENCY", "usd")

    # marketplace money rules, all amounts in cents
    DEFAULT_COMMISSION_RATE = _env_float("DEFAULT_COMMISSION_RATE", 15.0)
    HOLDING_PERIOD_DAYS = _env_int("HOLDING_PERIOD_DAYS", 7)
    MINIMUM_PAYOUT_AMOUNT = _env_int("MINIMUM_PAYOUT_AMOUNT", 2000)
    PROCESSING_FEE_PERCENT = _env_float("PROCESSING_FEE_PERCENT", 0.0)
    PROCESSING_FEE_FIXED = _env_int("PROCESSING_FEE_FIXED", 0)
    PLATFORM_FEE = _env_int("PLATFORM_FEE", 0)

    SWAGGER = {"title": "FastShop API", "uiversion": 3}


class DevelopmentConfig(Config):
    APP_ENV = "development"
    SHOW_ERROR_DETAILS = True
    LOG_LEVEL = "DEBUG"


class TestingConfig(Config):
    TESTING = True
    BCRYPT_LOG_ROUNDS = 4
    APP_ENV = "test"
    SHOW_ERROR_DETAILS = False
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-secret-key-that-is-long-enough-for-hs256"
    MAIL_SERVER = None
    MAIL_SUPPRESS_SEND = True
    STRIPE_SECRET_KEY = ""
    STRIPE_WEBHOOK_SECRET = "whsec_test"
    DEFAULT_COMMISSION_RATE = 15.0
    HOLDING_PERIOD_DAYS = 7
    MINIMUM_PAYOUT_AMOUNT = 2000
    PROCESSING_FEE_PERCENT = 0.0
    PROCESSING_FEE_FIXED = 0
    PLATFORM_FEE = 0


REQUIRED_SETTINGS = ("SQLALCHEMY_DATABASE_URI", "JWT_SECRET_KEY")


def validate_config(config):
    """Return a list of problems with the loaded settings; empty when usable."""
    problems = [f"{key} is not set" for key in REQUIRED_SETTINGS if not config.get(key)]

    port = config.get("PORT")
    if port is not None and not 0 < int(port) < 65536:
        problems.append("PORT must be between 1 and 65535")

    if config.get("APP_ENV") == "production" and not config.get("STRIPE_SECRET_KEY"):
        problems.append("STRIPE_SECRET_KEY is not set")

    rate = config.get("DEFAULT_COMMISSION_RATE", 0)
    if not 0 <= rate <= 100:
        problems.append("DEFAULT_COMMISSION_RATE must be between 0 and 100")

    return problems
