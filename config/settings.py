"""
Django settings for the prepaid budgets service.

All deployment-specific values come from environment variables. The
defaults are suitable for local development and the test suite (SQLite).
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    return os.environ.get(name, str(default)).strip().lower() in {"1", "true", "yes", "on"}


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-development-key")
DEBUG = _env_bool("DJANGO_DEBUG")
ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")
    if host.strip()
]

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "rest_framework",
    "budgets",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

# Upper bound, in seconds, for any single store interaction (lock waits and
# statements). A timeout surfaces as an OperationalError.
BUDGETS_STORE_TIMEOUT = float(os.environ.get("BUDGETS_STORE_TIMEOUT", "5"))

if os.environ.get("BUDGETS_DB_ENGINE", "sqlite") == "postgres":
    _timeout_ms = int(BUDGETS_STORE_TIMEOUT * 1000)
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("POSTGRES_DB", "budgets"),
            "USER": os.environ.get("POSTGRES_USER", "budgets"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
            "OPTIONS": {
                "connect_timeout": max(1, int(BUDGETS_STORE_TIMEOUT)),
                "options": f"-c statement_timeout={_timeout_ms} -c lock_timeout={_timeout_ms}",
            },
        }
    }
else:
    # IMMEDIATE takes the write lock at BEGIN, so concurrent writers wait
    # out the timeout instead of failing on lock upgrade.
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("BUDGETS_SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
            "OPTIONS": {
                "timeout": BUDGETS_STORE_TIMEOUT,
                "transaction_mode": "IMMEDIATE",
            },
            # File-backed so threaded tests share one database.
            "TEST": {
                "NAME": os.environ.get("BUDGETS_SQLITE_TEST_PATH", str(BASE_DIR / "test_db.sqlite3")),
            },
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Single timezone in which "today" is evaluated for every client's daily cycle.
BUDGETS_LEDGER_TIMEZONE = os.environ.get("BUDGETS_LEDGER_TIMEZONE", "UTC")

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
}

BUDGETS_LOG_LEVEL = os.environ.get("BUDGETS_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "default"},
    },
    "loggers": {
        "budgets": {"handlers": ["console"], "level": BUDGETS_LOG_LEVEL, "propagate": False},
    },
}
