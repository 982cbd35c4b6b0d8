# Django settings for portfolio project.
import os
from pathlib import Path

USE_X_FORWARDED_HOST      = True
SECURE_PROXY_SSL_HEADER   = ('HTTP_X_FORWARDED_PROTO', 'https')


CSRF_TRUSTED_ORIGINS = [
    o for o in os.getenv("CSRF_TRUSTED_ORIGINS", "http://localhost:5173,http://localhost:8000").split(",") if o
]
CSRF_COOKIE_NAME = "csrftoken"
CSRF_COOKIE_HTTPONLY = False          # <-- allow JS to read it
CSRF_COOKIE_SAMESITE = "Lax"
SESSION_COOKIE_SAMESITE = "Lax"


BASE_DIR = Path(__file__).resolve().parent.parent

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


import dj_database_url
DATABASE_URL = os.getenv("DATABASE_URL")

if DATABASE_URL:                       # production / docker-compose run
    DATABASES = {"default": dj_database_url.parse(DATABASE_URL)}
else:                                  # local dev / tests → SQLite
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "tmp_build.db",
        }
    }


# Timestamps in the request log drive conversation splitting, so keep them
# timezone-aware.
TIME_ZONE = "Europe/Oslo"
USE_TZ = True

LANGUAGE_CODE = "en"

USE_I18N = True

STATIC_ROOT = BASE_DIR / "staticfiles"
STATIC_URL = "/static/"

# Make this unique, and don't share it with anybody.
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-0s9#vq!m2x_7k@c4$r1t&8pz^w3n5e6")

MIDDLEWARE = (
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.middleware.locale.LocaleMiddleware",
)

ROOT_URLCONF = "portfolio.urls"

INSTALLED_APPS = (
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.staticfiles",
    "portfolio",
    "rag",
)

ALLOWED_HOSTS = [h for h in os.getenv("ALLOWED_HOSTS", "*").split(",") if h]


# ─────────────────────────
# Retrieval-augmented answering
# ─────────────────────────
def _csv(name):
    return [v.strip() for v in os.getenv(name, "").split(",") if v.strip()]


RAG = {
    # Persisted store; built from the documents below when missing.
    "VECTOR_STORE_PATH":     os.getenv("VECTOR_STORE_PATH", str(BASE_DIR / "data" / "vectorstore.json")),
    # Explicit sources (paths, file: URIs, http(s) URLs) win over the directory scan.
    "DOCUMENTS_TO_LOAD":     _csv("DOCUMENTS_TO_LOAD"),
    "DOCUMENTS_TO_LOAD_DIR": os.getenv("DOCUMENTS_TO_LOAD_DIR", str(BASE_DIR / "docs")),
    "ENCRYPT_CONTENT":       os.getenv("ENCRYPT_CONTENT", "true").lower() == "true",
    # Base64 AES-256 key; falls back to the VECTORSTORE_ENC_KEY env var.
    "ENCRYPTION_KEY_BASE64": os.getenv("ENCRYPTION_KEY_BASE64"),
    "PROMPT_TEMPLATE_PATH":  os.getenv(
        "PROMPT_TEMPLATE_PATH", str(BASE_DIR / "rag" / "prompts" / "rag-prompt-template.st")
    ),
    "EMBEDDING_MODEL":       os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
    "EMBEDDING_DIMENSIONS":  int(os.getenv("EMBEDDING_DIMENSIONS", "0")) or None,
    "CHAT_MODEL":            os.getenv("CHAT_MODEL", "gpt-4o-mini"),
    "TOP_K":                 40,
    "CONVERSATION_GAP_MINUTES": 20,
}


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "rag":       {"level": os.getenv("LOG_LEVEL", "INFO")},
        "portfolio": {"level": os.getenv("LOG_LEVEL", "INFO")},
    },
}

try:
    from .local_settings import *  # noqa
except ImportError:
    pass
