"""
Millstone – Django Settings (Infrastructure Only)
==================================================
Django hosts the JSON adapter over the ledger. The ledger itself is
framework-free and holds no database state; Django models are not used.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("MILLSTONE_SECRET_KEY", "millstone-dev-key-replace-before-deployment")

DEBUG = os.environ.get("MILLSTONE_DEBUG", "1") == "1"

ALLOWED_HOSTS = [
    host for host in os.environ.get("MILLSTONE_ALLOWED_HOSTS", "").split(",") if host
]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
]

# ── Middleware ────────────────────────────────────────────────
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ── URL & WSGI ────────────────────────────────────────────────
ROOT_URLCONF = "config.urls"

# ── Database ──────────────────────────────────────────────────
# Unused by the ledger; Django requires a default entry.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Ledger ────────────────────────────────────────────────────
# Keys mirror core.config.rules.LedgerConfig fields.
MILLSTONE_LEDGER = {
    "quantity_places": 3,
    "cost_places": 4,
    "money_places": 2,
    "percent_places": 2,
    "legacy_name_matching": True,
    "lot_prefix": "LOT",
    "currency": "INR",
}

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "millstone": {
            "handlers": ["console"],
            "level": os.environ.get("MILLSTONE_LOG_LEVEL", "INFO"),
        },
    },
}
