"""
Django settings for the mining equipment IP inventory backend.

Kept small and commented on purpose. Anything that changes between a
laptop and the site server is read from the environment so the same file
works for both.
"""
from pathlib import Path
import os

# Base directory for the backend project (../backend)
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-secret-key-for-local-inventory-only")

DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"

ALLOWED_HOSTS: list[str] = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

# Applications that are active for this project.
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third‑party apps
    "rest_framework",          # Django REST Framework for building APIs
    "corsheaders",             # To allow the dashboard frontend to talk to Django

    # Local apps
    "inventory",               # Equipment / IP import and integrity checks
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    # CORS middleware should come before CommonMiddleware
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

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

WSGI_APPLICATION = "config.wsgi.application"

# SQLite is enough for a single site; the path can be moved onto a shared volume.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("INVENTORY_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

# Password validation – left as the default validators from Django.
AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("DJANGO_TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "static"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Allow all origins during development – in a real deployment we would lock this down.
CORS_ALLOW_ALL_ORIGINS = DEBUG

# DRF configuration – basic + session authentication like the dashboard expects.
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.BasicAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
}

# Import / integrity tuning. Anything missing here falls back to the
# defaults in inventory/conf.py.
INVENTORY_IMPORT = {
    # Used when a spreadsheet row leaves SUBNET MASK blank.
    "DEFAULT_SUBNET": os.environ.get("INVENTORY_DEFAULT_SUBNET", "255.255.255.0"),
    # Upload size cap for the preview endpoint (bytes).
    "MAX_UPLOAD_BYTES": int(os.environ.get("INVENTORY_MAX_UPLOAD_BYTES", 10 * 1024 * 1024)),
    # Treat "fs03 " and "FS03" as the same machine when grouping.
    "NORMALIZE_MACHINE_IDS": os.environ.get("INVENTORY_NORMALIZE_MACHINE_IDS", "0") == "1",
    # How many ImportHistory rows the history endpoint returns.
    "HISTORY_LIMIT": int(os.environ.get("INVENTORY_HISTORY_LIMIT", 5)),
    # Seconds before a remote inventory request is abandoned.
    "REMOTE_TIMEOUT": float(os.environ.get("INVENTORY_REMOTE_TIMEOUT", 30)),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "inventory": {
            "handlers": ["console"],
            "level": os.environ.get("INVENTORY_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
