# librarydesk/settings.py

"""
Django settings for the LibraryDesk project.

Deployment values are read from the environment; everything else has a
sensible development default.
"""

import os
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

# Apps are imported by their bare label (``from students.models import Student``)
APPS_DIR = BASE_DIR / 'apps'
if str(APPS_DIR) not in sys.path:
    sys.path.insert(0, str(APPS_DIR))


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# =============================================================================
# CORE
# =============================================================================

SECRET_KEY = os.environ.get('LIBRARYDESK_SECRET_KEY', 'django-insecure-librarydesk-dev-key')
DEBUG = env_bool('LIBRARYDESK_DEBUG', True)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get('LIBRARYDESK_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
    if host.strip()
]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third party
    'django_countries',
    'formtools',

    # Local apps
    'utils',
    'accounts',
    'core',
    'branches',
    'students',
    'subscriptions',
    'fees.apps.FeesConfig',
    'khatabook',
    'attendance',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'librarydesk.middleware.LibraryMiddleware',
    'utils.middleware.AuditContextMiddleware',
]

ROOT_URLCONF = 'librarydesk.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
                'core.context_processors.library_context',
            ],
        },
    },
]

WSGI_APPLICATION = 'librarydesk.wsgi.application'


# =============================================================================
# DATABASE
# =============================================================================

DATABASES = {
    'default': {
        'ENGINE': os.environ.get('LIBRARYDESK_DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': os.environ.get('LIBRARYDESK_DB_NAME', str(BASE_DIR / 'librarydesk.sqlite3')),
        'USER': os.environ.get('LIBRARYDESK_DB_USER', ''),
        'PASSWORD': os.environ.get('LIBRARYDESK_DB_PASSWORD', ''),
        'HOST': os.environ.get('LIBRARYDESK_DB_HOST', ''),
        'PORT': os.environ.get('LIBRARYDESK_DB_PORT', ''),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# =============================================================================
# AUTH
# =============================================================================

AUTHENTICATION_BACKENDS = [
    'accounts.backends.EmailAuthBackend',
]

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
]

LOGIN_URL = 'accounts:login'
LOGIN_REDIRECT_URL = 'core:dashboard'
LOGOUT_REDIRECT_URL = 'accounts:login'


# =============================================================================
# I18N / TIME
# =============================================================================

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.environ.get('LIBRARYDESK_TIME_ZONE', 'Asia/Kolkata')
USE_I18N = True
USE_TZ = True


# =============================================================================
# STATIC / MEDIA
# =============================================================================

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
MEDIA_URL = '/media/'
MEDIA_ROOT = Path(os.environ.get('LIBRARYDESK_MEDIA_ROOT', BASE_DIR / 'media'))


# =============================================================================
# EMAIL
# =============================================================================

EMAIL_BACKEND = os.environ.get(
    'LIBRARYDESK_EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend'
)
DEFAULT_FROM_EMAIL = os.environ.get('LIBRARYDESK_FROM_EMAIL', 'no-reply@librarydesk.local')


# =============================================================================
# APPLICATION SETTINGS
# =============================================================================

LIBRARYDESK_NEW_STUDENT_WINDOW_HOURS = int(os.environ.get('LIBRARYDESK_NEW_STUDENT_WINDOW_HOURS', 24))
LIBRARYDESK_DEFAULT_PAGE_SIZE = int(os.environ.get('LIBRARYDESK_DEFAULT_PAGE_SIZE', 10))
LIBRARYDESK_CASH_IN_HAND_METHODS = ['CASH', 'UPI']
LIBRARYDESK_EXPIRY_REMINDER_DAYS = int(os.environ.get('LIBRARYDESK_EXPIRY_REMINDER_DAYS', 3))
LIBRARYDESK_SHORT_SESSION_MINUTES = 120
LIBRARYDESK_FULL_DAY_MINUTES = 360
LIBRARYDESK_DEFAULT_TIMEZONE = TIME_ZONE
LIBRARYDESK_DEFAULT_CURRENCY = os.environ.get('LIBRARYDESK_DEFAULT_CURRENCY', 'INR')


# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.environ.get('LIBRARYDESK_LOG_LEVEL', 'INFO')
LOG_FILE = os.environ.get('LIBRARYDESK_LOG_FILE')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {name}: {message}',
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
            'level': 'WARNING',
            'propagate': False,
        },
    },
}

for _app_logger in ('librarydesk', 'utils', 'accounts', 'core', 'branches', 'students',
                    'subscriptions', 'fees', 'khatabook', 'attendance'):
    LOGGING['loggers'][_app_logger] = {
        'handlers': ['console'],
        'level': LOG_LEVEL,
        'propagate': False,
    }

if LOG_FILE:
    LOGGING['handlers']['file'] = {
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': LOG_FILE,
        'maxBytes': 5 * 1024 * 1024,
        'backupCount': 5,
        'formatter': 'verbose',
    }
    for _logger in LOGGING['loggers'].values():
        _logger['handlers'].append('file')
