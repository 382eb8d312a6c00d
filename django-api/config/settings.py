"""Django settings for the checkout API.

Values come from environment variables with development defaults.
"""

import os
from pathlib import Path

from config.logconfig import configure_logging

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name: str, default: bool = False) -> bool:
    return os.environ.get(name, str(default)).lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-insecure-secret-key")
DEBUG = env_bool("DJANGO_DEBUG", True)
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "rest_framework",
    "checkout",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
]

ROOT_URLCONF = "config.urls"

if os.environ.get("POSTGRES_DB"):
    from django.db.backends.postgresql.psycopg_any import IsolationLevel

    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["POSTGRES_DB"],
            "USER": os.environ.get("POSTGRES_USER", "postgres"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
            "OPTIONS": {"isolation_level": IsolationLevel.SERIALIZABLE},
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CACHES = {
    "default": {
        "BACKEND": os.environ.get("CACHE_BACKEND", "django.core.cache.backends.locmem.LocMemCache"),
        "LOCATION": os.environ.get("CACHE_LOCATION", "checkout"),
    }
}

USE_TZ = True
TIME_ZONE = "UTC"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": ["rest_framework.authentication.SessionAuthentication"],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
}

CHECKOUT = {
    "VENUE_UTC_OFFSET_HOURS": int(os.environ.get("VENUE_UTC_OFFSET_HOURS", "-5")),
    "EVENT_GRACE_MINUTES": int(os.environ.get("EVENT_GRACE_MINUTES", "60")),
    "CURRENCY": os.environ.get("CHECKOUT_CURRENCY", "COP"),
    "MINIMUM_TOTAL": os.environ.get("CHECKOUT_MINIMUM_TOTAL", "1500"),
    "CART_MAX_AGE_MINUTES": int(os.environ.get("CART_MAX_AGE_MINUTES", "30")),
    "GENERAL_TICKET_HORIZON_DAYS": int(os.environ.get("GENERAL_TICKET_HORIZON_DAYS", "21")),
    "LOCK_BACKEND": os.environ.get("CART_LOCK_BACKEND", "memory"),
    "LOCK_TTL_SECONDS": int(os.environ.get("CART_LOCK_TTL_SECONDS", "600")),
    "LOCK_SWEEP_INTERVAL_SECONDS": int(os.environ.get("CART_LOCK_SWEEP_INTERVAL_SECONDS", "300")),
    "LOCK_SWEEPER_ENABLED": env_bool("CART_LOCK_SWEEPER_ENABLED"),
    "ASYNC_URL_TIMEOUT_SECONDS": float(os.environ.get("ASYNC_URL_TIMEOUT_SECONDS", "15")),
    "ASYNC_URL_POLL_INTERVAL_SECONDS": float(os.environ.get("ASYNC_URL_POLL_INTERVAL_SECONDS", "1.5")),
    "GATEWAY": os.environ.get("PAYMENT_GATEWAY", "fake"),
    "WOMPI_PUBLIC_KEY": os.environ.get("WOMPI_PUBLIC_KEY", ""),
    "WOMPI_PRIVATE_KEY": os.environ.get("WOMPI_PRIVATE_KEY", ""),
    "WOMPI_INTEGRITY_SECRET": os.environ.get("WOMPI_INTEGRITY_SECRET", ""),
    "WOMPI_EVENTS_SECRET": os.environ.get("WOMPI_EVENTS_SECRET", ""),
    "WOMPI_BASE_URL": os.environ.get("WOMPI_BASE_URL", "https://sandbox.wompi.co/v1"),
    "WOMPI_TIMEOUT_SECONDS": float(os.environ.get("WOMPI_TIMEOUT_SECONDS", "15")),
    "WEBHOOK_STRICT": env_bool("WEBHOOK_STRICT", True),
    "QR_KEY": os.environ.get("QR_ENCRYPTION_KEY", ""),
}

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = os.environ.get("LOG_FORMAT", "console")
LOGGING_CONFIG = None
configure_logging(LOG_LEVEL, LOG_FORMAT)
