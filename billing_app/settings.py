import os

from tasks.config import TASK_CONFIG

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))



SECRET_KEY = os.environ.get(
    "DJANGO_SECRET_KEY", "x7#q9v!2m$kfee-track-dev-only-5h@1r0w8pz&u3c"
)


DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"

ALLOWED_HOSTS = []


# Application definition

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.admin",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django_celery_results",
    "apps.corecode",
    "apps.students",
    "apps.finance",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "billing_app.urls"

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


# Database
# https://docs.djangoproject.com/en/4.2/ref/settings/#databases

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.path.join(BASE_DIR, "db.sqlite3"),
    }
}


# Internationalization
# https://docs.djangoproject.com/en/4.2/topics/i18n/

LANGUAGE_CODE = "en-us"

TIME_ZONE = os.environ.get("SCHOOL_TIME_ZONE", "UTC")

USE_I18N = True

USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.AutoField"


# Email / alerts

SCHOOL_NAME = os.environ.get("SCHOOL_NAME", "My School Track")

DEFAULT_FROM_EMAIL = os.environ.get("DEFAULT_FROM_EMAIL", "noreply@example.com")

ADMINS = [
    ("Bursar", email)
    for email in os.environ.get("SCHOOL_ADMIN_EMAILS", "").split(",")
    if email
]

EMAIL_BACKEND = os.environ.get(
    "EMAIL_BACKEND", "django.core.mail.backends.console.EmailBackend"
)


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "level": "DEBUG",
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
        "file": {
            "level": "INFO",
            "class": "logging.handlers.TimedRotatingFileHandler",
            "when": "W6",
            "interval": 4,
            "backupCount": 3,
            "encoding": "utf8",
            "filename": os.path.join(BASE_DIR, "billing.log"),
            "formatter": "verbose",
            "delay": True,
        },
    },
    "loggers": {
        "django": {
            "handlers": ["file"],
            "level": "INFO",
            "propagate": True,
        },
        "apps": {
            "handlers": ["console", "file"],
            "level": os.environ.get("BILLING_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        "tasks": {
            "handlers": ["console", "file"],
            "level": "INFO",
            "propagate": False,
        },
        "system.tasks": {
            "handlers": ["console", "file"],
            "level": "INFO",
            "propagate": False,
        },
    },
}


# Billing engine defaults
# Class ladders are ordered; a ladder's "next" names the ladder its top class
# feeds into (ECD B -> Grade 1 goes through the pending placement list).

SCHOOL_BILLING = {
    "BILLING_CYCLE": os.environ.get("BILLING_CYCLE", "MONTHLY"),
    "PAYMENT_DUE_DAY": 1,
    "TRANSPORT_DUE_DAY": 7,
    "AUTO_PROMOTION_ENABLED": True,
    "AUTO_PROMOTION_DATE": "01-01",
    "RETAIN_PAYMENT_HISTORY_ON_GRADUATION": False,
    "TRANSFER_RETENTION_YEARS": 5,
    "CLASS_LADDERS": [
        {
            "family": "ecd",
            "class_group": "ecd-ab",
            "labels": ["ECD A", "ECD B"],
            "next": "primary",
        },
        {
            "family": "primary",
            "class_group": "grade-1-7",
            "prefix": "Grade",
            "first": 1,
            "last": 7,
            "graduation_reason": "Graduated from primary school (Grade 7)",
        },
        {
            "family": "secondary",
            "class_group": "form-1-6",
            "prefix": "Form",
            "first": 1,
            "last": 6,
            "graduation_reason": "Graduated from secondary school (Form 6)",
        },
        {
            "family": "college",
            "class_group": "college",
            "prefix": "College Year",
            "aliases": ["Year"],
            "first": 1,
            "last": 3,
            "graduation_reason": "Graduated from college",
        },
    ],
}


# Celery

CELERY_BROKER_URL = TASK_CONFIG["BROKER_URL"]
CELERY_RESULT_BACKEND = TASK_CONFIG["RESULT_BACKEND"]
CELERY_TASK_TRACK_STARTED = TASK_CONFIG["TASK_TRACK_STARTED"]
CELERY_TASK_TIME_LIMIT = TASK_CONFIG["TASK_TIME_LIMIT"]
CELERY_TASK_SERIALIZER = TASK_CONFIG["TASK_SERIALIZER"]
CELERY_RESULT_SERIALIZER = TASK_CONFIG["RESULT_SERIALIZER"]
CELERY_ACCEPT_CONTENT = TASK_CONFIG["ACCEPT_CONTENT"]
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = not TASK_CONFIG["USE_CELERY"]
CELERY_BEAT_SCHEDULE = TASK_CONFIG["BEAT_SCHEDULE"]
