from .base import *  # noqa

DEBUG = True

# Use SQLite for testing to avoid needing a running PostgreSQL instance.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "test_db.sqlite3",  # noqa: F405
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

CELERY_TASK_ALWAYS_EAGER = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

# Throttle classes stay installed; a None rate lets every request through
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {"anon": None, "user": None}  # noqa: F405

DEFAULT_PAYMENT_GATEWAY = "asaas"
ASAAS_API_KEY = "test-asaas-key"
ASAAS_API_URL = "https://asaas.test/api/v3"
ASAAS_WEBHOOK_TOKEN = "test-asaas-webhook-token"
MERCADOPAGO_ACCESS_TOKEN = "TEST-mercadopago-token"
MERCADOPAGO_API_URL = "https://mercadopago.test"
MERCADOPAGO_WEBHOOK_SECRET = "test-mercadopago-secret"

# Let pytest's caplog see application records
LOGGING["loggers"]["apps"]["propagate"] = True  # noqa: F405
LOGGING["loggers"]["core"]["propagate"] = True  # noqa: F405
