"""
Django settings for the theatre scheduling backend.

Alle Werte kommen aus Umgebungsvariablen (bzw. einer .env-Datei); die Defaults
sind für lokale Entwicklung mit SQLite gedacht.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

from datetime import timedelta

import dj_database_url


BASE_DIR = Path(__file__).resolve().parent.parent


SECRET_KEY = os.getenv(
    'DJANGO_SECRET_KEY',
    'django-insecure-3v#k1x!q9m@theatre-dev-only-7d2f0b8c5a1e4'
)

DEBUG = os.getenv('DJANGO_DEBUG', 'True').lower() == 'true'

ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,[::1],testserver').split(',')
    if host.strip()
]


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    'rest_framework',
    'corsheaders',

    'theatre_backend.core',
    'theatre_backend.scheduling',
    'theatre_backend.notifications',
]


MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',  # Muss vor CommonMiddleware stehen
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]


ROOT_URLCONF = 'theatre_backend.urls'


TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]


WSGI_APPLICATION = 'theatre_backend.wsgi.application'


# Persistent Store:
# - DATABASE_URL wählt die Datenbank (PostgreSQL in Produktion).
# - Ohne DATABASE_URL läuft alles auf einer lokalen SQLite-Datei.
DATABASES = {
    'default': dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'dev.sqlite3'}",
        conn_max_age=int(os.getenv('DB_CONN_MAX_AGE', '0')),
    ),
}

# SQLite kennt kein SELECT ... FOR UPDATE. IMMEDIATE nimmt den Schreib-Lock
# schon bei BEGIN, damit serialisieren sich Scheduling-Transaktionen.
if DATABASES['default']['ENGINE'] == 'django.db.backends.sqlite3':
    DATABASES['default'].setdefault('OPTIONS', {}).update({
        'transaction_mode': 'IMMEDIATE',
        'timeout': 20,
    })
    # Test-DB als Datei: Threads in Concurrency-Tests teilen sich sonst keine Datenbank.
    DATABASES['default']['TEST'] = {'NAME': str(BASE_DIR / 'test_theatre.sqlite3')}


AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]


# Custom user model (must be set before running any migrations)
AUTH_USER_MODEL = 'core.User'


# Django REST Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
}


# SimpleJWT
JWT_SIGNING_KEY = os.getenv('JWT_SIGNING_KEY', SECRET_KEY)

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=30),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=7),
    'ALGORITHM': 'HS256',
    'SIGNING_KEY': JWT_SIGNING_KEY,
}


LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'UTC')
USE_I18N = True
USE_TZ = True


STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


CORS_ALLOW_ALL_ORIGINS = DEBUG
CORS_ALLOW_CREDENTIALS = True


# Real-time Event Bus:
# - InMemoryEventBus für Entwicklung und Tests
# - RedisEventBus (PUBLISH auf Topic-Channels) in Produktion
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

REALTIME = {
    'BACKEND': os.getenv('REALTIME_BACKEND', 'theatre_backend.realtime.bus.InMemoryEventBus'),
    'OPTIONS': {
        'url': REDIS_URL,
        'channel_prefix': os.getenv('REALTIME_CHANNEL_PREFIX', ''),
    },
}


# Celery: gibt Geräte abgelaufener OPs regelmäßig wieder frei
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', REDIS_URL)
CELERY_RESULT_BACKEND = CELERY_BROKER_URL
CELERY_TASK_ALWAYS_EAGER = os.getenv('CELERY_TASK_ALWAYS_EAGER', 'True').lower() == 'true'
CELERY_BEAT_SCHEDULE = {
    'release-elapsed-operations': {
        'task': 'theatre_backend.scheduling.tasks.release_elapsed_operations',
        'schedule': timedelta(minutes=5),
    },
}


LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '{levelname} {asctime} {module}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'django.db.backends': {
            'handlers': ['console'],
            'level': 'WARNING',  # Auf DEBUG setzen für SQL-Queries
            'propagate': False,
        },
        'theatre_backend': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}
