"""
Django settings for the storefront orders project.

Values are read from the environment; a local ``.env`` file is loaded first
when present.
"""
import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def _env_bool(key: str, default: bool = False) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-dev-key-change-me")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "orders.apps.OrdersConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "orders.api.middleware.PrincipalMiddleware",
]

ROOT_URLCONF = "storefront.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "storefront.wsgi.application"
ASGI_APPLICATION = "storefront.asgi.application"

if os.environ.get("ORDERS_DB_ENGINE", "sqlite") == "postgresql":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("POSTGRES_DB", "storefront"),
            "USER": os.environ.get("POSTGRES_USER", "storefront"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
            "CONN_MAX_AGE": int(os.environ.get("POSTGRES_CONN_MAX_AGE", "60")),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
            # Writers queue on the busy timeout instead of failing a lock upgrade
            "OPTIONS": {
                "transaction_mode": "IMMEDIATE",
                "timeout": int(os.environ.get("SQLITE_TIMEOUT", "20")),
            },
            # In-memory shared cache does not honour the busy timeout across threads
            "TEST": {
                "NAME": os.environ.get("SQLITE_TEST_PATH", str(BASE_DIR / "test_db.sqlite3")),
            },
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

ORDERS = {
    "TAX_RATE": Decimal(os.environ.get("ORDERS_TAX_RATE", "0.08")),
    "FREE_SHIPPING_THRESHOLD": Decimal(os.environ.get("ORDERS_FREE_SHIPPING_THRESHOLD", "500")),
    "FLAT_SHIPPING_FEE": Decimal(os.environ.get("ORDERS_FLAT_SHIPPING_FEE", "499")),
    "TOTAL_TOLERANCE": Decimal(os.environ.get("ORDERS_TOTAL_TOLERANCE", "0.01")),
    "ADMIN_PAGE_SIZE": int(os.environ.get("ORDERS_ADMIN_PAGE_SIZE", "20")),
    "ADMIN_MAX_PAGE_SIZE": int(os.environ.get("ORDERS_ADMIN_MAX_PAGE_SIZE", "100")),
    "STRICT_TRANSITIONS": _env_bool("ORDERS_STRICT_TRANSITIONS", False),
    "PRODUCT_CATALOG": os.environ.get(
        "ORDERS_PRODUCT_CATALOG", "orders.infra.catalog.OrmProductCatalog"
    ),
    "CART_SNAPSHOT": os.environ.get("ORDERS_CART_SNAPSHOT", "orders.infra.cart.OrmCartSnapshot"),
    "PUSH_CHANNEL": os.environ.get("ORDERS_PUSH_CHANNEL", "orders.infra.push.LoggingPushChannel"),
    "OUTBOX_BATCH_SIZE": int(os.environ.get("ORDERS_OUTBOX_BATCH_SIZE", "100")),
    "OUTBOX_MAX_RETRIES": int(os.environ.get("ORDERS_OUTBOX_MAX_RETRIES", "3")),
    "STALE_RESERVATION_MINUTES": int(os.environ.get("ORDERS_STALE_RESERVATION_MINUTES", "15")),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {"()": "orders.utils.logging.JsonFormatter"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.environ.get("LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "django.db.backends": {"level": "WARNING"},
    },
}
