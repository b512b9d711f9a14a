"""Django settings for the card-offer escrow service.


This project runs the deal lifecycle end to end:
- Merchant posts a deal → admin approves → customer accepts (advance locked)
- Customer places and locks the order → merchant pays remaining → OTP verified → settlement


Identity comes from a trusted gateway (X-User-Id / X-User-Role headers).
"""

import os
from pathlib import Path
from decimal import Decimal


BASE_DIR = Path(__file__).resolve().parent.parent
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.getenv("DEBUG", "1") in ("1", "true", "True", "yes")
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "*").split(",")
CSRF_TRUSTED_ORIGINS = os.getenv("CSRF_TRUSTED_ORIGINS", "").split(",") if os.getenv("CSRF_TRUSTED_ORIGINS") else []

def env_bool(name, default=""):
    v = os.getenv(name, default)
    return v.lower() in ("1", "true", "yes", "on")

#######################
# HMAC secret for the gateway identity headers. Empty => trust headers (dev).
IDENTITY_HEADER_SECRET = os.getenv("IDENTITY_HEADER_SECRET", "")

# Deal economics. Commission is a share of the spread (expected_buy - card_offer),
# advance is a share of expected_buy; both rounded to MONEY_QUANTUM.
DEAL_COMMISSION_RATE = Decimal(os.getenv("DEAL_COMMISSION_RATE", "0.70"))
DEAL_ADVANCE_RATE = Decimal(os.getenv("DEAL_ADVANCE_RATE", "0.25"))
MONEY_QUANTUM = Decimal(os.getenv("MONEY_QUANTUM", "0.01"))

# Receives the platform's share of the spread on settlement.
PLATFORM_USER_EMAIL = os.getenv("PLATFORM_USER_EMAIL", "platform@card-escrow.local")

# Blob storage stub
STORAGE_BASE_URL = os.getenv("STORAGE_BASE_URL", "http://localhost:8000/stub/storage/blobs/")

# Fallback reasons when an admin rejects without typing one
DEFAULT_DEAL_REJECTION_NOTE = "Your deal did not meet our listing requirements."
DEFAULT_KYC_REJECTION_NOTE = "Your submission did not meet our requirements. Please resubmit with correct details."
DEFAULT_OTP_REJECTION_NOTE = "The OTP could not be verified. Please check the code and submit again."

# Notifications are recorded in the in-app inbox (notify_stub); disable to drop them.
NOTIFICATIONS_ENABLED = env_bool("NOTIFICATIONS_ENABLED", "1")
#######################


INSTALLED_APPS = [
	"django.contrib.admin",
	"django.contrib.auth",
	"django.contrib.contenttypes",
	"django.contrib.sessions",
	"django.contrib.messages",
	"django.contrib.staticfiles",
	# local apps
	"core",
	"api",
	"storage_stub",
	"notify_stub",
]


MIDDLEWARE = [
	"django.middleware.security.SecurityMiddleware",
	"django.contrib.sessions.middleware.SessionMiddleware",
	"django.middleware.common.CommonMiddleware",
	"django.middleware.csrf.CsrfViewMiddleware",
	"django.contrib.auth.middleware.AuthenticationMiddleware",
	"django.contrib.messages.middleware.MessageMiddleware",
]


ROOT_URLCONF = "card_escrow.urls"
TEMPLATES = [
	{
		"BACKEND": "django.template.backends.django.DjangoTemplates",
		"DIRS": [],
		"APP_DIRS": True,
		"OPTIONS": {
			"context_processors": [
				"django.template.context_processors.debug",
				"django.template.context_processors.request",
				"django.contrib.auth.context_processors.auth",
				"django.contrib.messages.context_processors.messages",
			],
		},
	},
]


WSGI_APPLICATION = "card_escrow.wsgi.application"


DB_ENGINE = os.getenv("DB_ENGINE", "sqlite")
if DB_ENGINE == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB", "card_escrow"),
            "USER": os.getenv("POSTGRES_USER", "card_escrow"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", "card_escrow"),
            "HOST": os.getenv("POSTGRES_HOST", "localhost"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
            # writers queue on the database lock at BEGIN instead of failing mid-transaction
            "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
            # file-backed so concurrent connections in tests share one database
            "TEST": {"NAME": os.getenv("SQLITE_TEST_NAME", str(BASE_DIR / "test_db.sqlite3"))},
        }
    }


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOGGING = {
	"version": 1,
	"disable_existing_loggers": False,
	"formatters": {
		"plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
	},
	"handlers": {
		"console": {"class": "logging.StreamHandler", "formatter": "plain"},
	},
	"loggers": {
		"core": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
		"api": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
		"notify_stub": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
	},
	"root": {"handlers": ["console"], "level": "WARNING"},
}


AUTH_PASSWORD_VALIDATORS = []


LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True


STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Demo seeding: one admin, one merchant, one customer.
DEMO_ADMIN_EMAIL = "admin@card-escrow.local"
DEMO_MERCHANT_EMAIL = "merchant@card-escrow.local"
DEMO_CUSTOMER_EMAIL = "customer@card-escrow.local"
