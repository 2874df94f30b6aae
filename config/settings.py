"""
RSO – Django Settings (Infrastructure Only)
============================================
Django serves as the framework container for RSO.
The engines are the authority — Django does not dictate structure.

Only core.order_store is a Django app; engines stay framework-free.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("RSO_SECRET_KEY", "rso-dev-key-replace-before-deployment")

DEBUG = os.environ.get("RSO_DEBUG", "1") == "1"

ALLOWED_HOSTS = [
    host for host in os.environ.get("RSO_ALLOWED_HOSTS", "").split(",") if host
]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    # ── RSO Modules ───────────────────────────────────────
    "core.order_store",
]

# ── Middleware ────────────────────────────────────────────────
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ── URL ───────────────────────────────────────────────────────
ROOT_URLCONF = "config.urls"

# ── Database ──────────────────────────────────────────────────
# SQLite for development. PostgreSQL in production (row locks with
# bounded lock_timeout are only enforced there).
if os.environ.get("RSO_DB_NAME"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["RSO_DB_NAME"],
            "USER": os.environ.get("RSO_DB_USER", ""),
            "PASSWORD": os.environ.get("RSO_DB_PASSWORD", ""),
            "HOST": os.environ.get("RSO_DB_HOST", "localhost"),
            "PORT": os.environ.get("RSO_DB_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ── Default Primary Key ──────────────────────────────────────
# RSO uses UUIDs explicitly. This is a Django fallback only.
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "rso": {
            "handlers": ["console"],
            "level": os.environ.get("RSO_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}

# ── Invoicing ─────────────────────────────────────────────────
RSO_CURRENCY = "RON"
RSO_URGENCY_RATE = "0.10"
RSO_REOPENED_STATUS = "IN_PROGRESS"
RSO_ALLOW_PARTIAL_INVOICING = False
RSO_LOCK_TIMEOUT_SECONDS = 5.0
RSO_COUNTER_TIMEOUT_SECONDS = 2.0
RSO_COUNTER_ATTEMPTS = 3
RSO_INVOICE_PREFIX = ""
RSO_INVOICE_SUFFIX = ""
RSO_INVOICE_PADDING = 1
RSO_INVOICE_START_AT = 1
