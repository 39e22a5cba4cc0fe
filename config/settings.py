"""
Django settings for the Assessment Platform API.
"""
import os
from pathlib import Path
import environ
import sentry_sdk
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.celery import CeleryIntegration
from kombu import Queue, Exchange

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Initialize environment variables
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
    DB_CONN_MAX_AGE=(int, 600),
    RATE_LIMIT_ENABLED=(bool, True),
    JSON_LOGS=(bool, False),
    LOG_LEVEL=(str, 'INFO'),
    APP_ENVIRONMENT=(str, 'production'),
    DEMO_MODE=(bool, False),
    READ_ONLY_MODE=(bool, False),
    DEMO_REPORT_LIMIT=(int, 5),
    DEMO_UPGRADE_PROMPT_THRESHOLD=(int, 4),
    DEMO_RETENTION_DAYS=(int, 30),
)

# Read .env file if it exists
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env('SECRET_KEY', default='insecure-local-development-key-change-me')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env('DEBUG')

ALLOWED_HOSTS = env('ALLOWED_HOSTS')

USE_X_FORWARDED_HOST = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# Application definition
INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.staticfiles',

    # Third-party apps
    'rest_framework',
    'drf_spectacular',
    'corsheaders',
    'django_ratelimit',

    # Platform apps
    'apps.core',
    'apps.tenants',
    'apps.rbac',
    'apps.assessments',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',

    # Custom middleware (order matters: identity, then scope, then firewall)
    'apps.core.middleware.RequestIDMiddleware',
    'apps.rbac.middleware.SessionIdentityMiddleware',
    'apps.tenants.middleware.TenantScopeMiddleware',
    'apps.tenants.middleware.DemoWriteFirewallMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'

# Database
DATABASE_URL = env('DATABASE_URL', default='sqlite:///' + str(BASE_DIR / 'db.sqlite3'))
DATABASES = {
    'default': env.db_url_config(DATABASE_URL),
}
DATABASES['default']['CONN_MAX_AGE'] = env('DB_CONN_MAX_AGE')

# Configure based on database engine
if 'postgresql' in DATABASES['default']['ENGINE']:
    DATABASES['default']['OPTIONS'] = {
        'connect_timeout': 10,
    }

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Authentication Backends
# Platform users log in with a username or email address
AUTHENTICATION_BACKENDS = [
    'apps.rbac.backends.CredentialsBackend',
]

# Sessions: the session stores only the user id, the identity is re-read
# from the database on every request.
SESSION_ENGINE = 'django.contrib.sessions.backends.db'
SESSION_COOKIE_AGE = env.int('SESSION_COOKIE_AGE', default=60 * 60 * 24 * 7)
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = 'Lax'

# REST Framework
REST_FRAMEWORK = {
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'apps.core.authentication.MiddlewareAuthentication',  # Identity resolved by SessionIdentityMiddleware
    ],
    'DEFAULT_PERMISSION_CLASSES': [],
    'UNAUTHENTICATED_USER': None,
    'EXCEPTION_HANDLER': 'apps.core.exceptions.custom_exception_handler',
}

# DRF Spectacular (OpenAPI)
SPECTACULAR_SETTINGS = {
    'TITLE': 'Assessment Platform API',
    'DESCRIPTION': '''
Multi-tenant educational assessment platform.

## Authentication

Session based: `POST /api/auth/login` sets a session cookie holding the user
id. The user is re-read on every request, so role changes apply on the next
request.

## Authorization (RBAC)

Every user holds exactly one role:

| Role | Reach |
|------|-------|
| `developer` | Everything, including system configuration |
| `system_admin` | Everything except developer-reserved resources |
| `org_admin` | Users, reports and the organization inside its own organization |
| `customer`, `tutor`, `demo` | Own reports inside assigned modules |

Denials return `{"error", "code", ...}` with 401, 403 or 400.

## Demo Deployments

Demo deployments only accept writes on an allow-list and pin every written
tenant id to the reserved demo tenant.
    ''',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
    'COMPONENT_SPLIT_REQUEST': True,
    'SCHEMA_PATH_PREFIX': r'/api/',
    'TAGS': [
        {'name': 'Authentication', 'description': 'Registration, login, logout and the current identity'},
        {'name': 'Modules', 'description': 'Educational module access'},
        {'name': 'Organizations', 'description': 'Organization management and membership'},
        {'name': 'Admin', 'description': 'Dashboard and analytics'},
        {'name': 'Admin - Users', 'description': 'User administration'},
        {'name': 'System Config', 'description': 'Platform settings'},
        {'name': 'Assessment Cases', 'description': 'Reports per module'},
        {'name': 'Demo', 'description': 'Demo quota and upgrade prompts'},
    ],
}

# ============================================================================
# SECURITY SETTINGS
# ============================================================================

# HTTPS Enforcement (Production Only)
if not DEBUG:
    SECURE_SSL_REDIRECT = env.bool('SECURE_SSL_REDIRECT', default=True)
    SECURE_HSTS_SECONDS = 31536000  # 1 year
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    CSRF_COOKIE_HTTPONLY = True
    CSRF_COOKIE_SAMESITE = 'Lax'
else:
    SECURE_SSL_REDIRECT = False
    SECURE_HSTS_SECONDS = 0
    SESSION_COOKIE_SECURE = False
    CSRF_COOKIE_SECURE = False

SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'

# CORS Configuration
CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = env.list('CORS_ALLOWED_ORIGINS', default=[])
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_HEADERS = [
    'accept',
    'accept-encoding',
    'content-type',
    'origin',
    'user-agent',
    'x-csrftoken',
    'x-requested-with',
    'x-request-id',
]

# Cache: Redis when configured, otherwise process-local memory
REDIS_URL = env('REDIS_URL', default=None)
if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django_redis.cache.RedisCache',
            'LOCATION': REDIS_URL,
            'OPTIONS': {
                'CLIENT_CLASS': 'django_redis.client.DefaultClient',
                'SOCKET_CONNECT_TIMEOUT': 5,
                'SOCKET_TIMEOUT': 5,
                'CONNECTION_POOL_KWARGS': {
                    'max_connections': 50,
                    'retry_on_timeout': True,
                },
            },
            'KEY_PREFIX': 'assessments',
            'TIMEOUT': 300,
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'assessments',
        }
    }
    # Process-local counters are acceptable for single-process development.
    SILENCED_SYSTEM_CHECKS = ['django_ratelimit.E003', 'django_ratelimit.W001']

# ============================================================================
# DEPLOYMENT ENVIRONMENT
# ============================================================================

# Environment label: production, staging, development, demo, k12-demo,
# post-secondary-demo or tutoring-demo.
APP_ENVIRONMENT = env('APP_ENVIRONMENT')

# Demo deployments: write allow-list, tenant pinning, report quota.
DEMO_MODE = env('DEMO_MODE')
DEMO_CUSTOMER_ID = env('DEMO_CUSTOMER_ID', default='demo-customer')
DEMO_DATABASE_URL = env('DEMO_DATABASE_URL', default=None)
DEMO_REPORT_LIMIT = env('DEMO_REPORT_LIMIT')
DEMO_UPGRADE_PROMPT_THRESHOLD = env('DEMO_UPGRADE_PROMPT_THRESHOLD')
DEMO_RETENTION_DAYS = env('DEMO_RETENTION_DAYS')

# Rejects every write outside the allow-list, demo or not.
READ_ONLY_MODE = env('READ_ONLY_MODE')

# ============================================================================
# CELERY
# ============================================================================

CELERY_BROKER_URL = env('CELERY_BROKER_URL', default=REDIS_URL or 'memory://')
CELERY_RESULT_BACKEND = env('CELERY_RESULT_BACKEND', default=None)

CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'

CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 30 * 60        # 30 minutes
CELERY_TASK_SOFT_TIME_LIMIT = 25 * 60   # 25 minutes

CELERY_TASK_DEFAULT_QUEUE = 'default'
CELERY_TASK_DEFAULT_EXCHANGE = 'default'
CELERY_TASK_DEFAULT_ROUTING_KEY = 'default'

CELERY_QUEUES = (
    Queue('default', Exchange('default'), routing_key='default'),
    Queue('maintenance', Exchange('maintenance'), routing_key='maintenance'),
)

CELERY_TASK_ROUTES = {
    'apps.rbac.tasks.*': {'queue': 'maintenance'},
}

CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_ACKS_LATE = True

# Rate Limiting
RATE_LIMIT_ENABLED = env('RATE_LIMIT_ENABLED')

# Django-ratelimit configuration
RATELIMIT_USE_CACHE = 'default'
RATELIMIT_ENABLE = RATE_LIMIT_ENABLED

# Use custom view for rate limit responses (returns 429 instead of 403)
RATELIMIT_VIEW = 'apps.core.exceptions.ratelimit_view'

# Logging Configuration
LOG_LEVEL = env('LOG_LEVEL')
JSON_LOGS = env('JSON_LOGS')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'json': {
            '()': 'apps.core.logging.JSONFormatter',
        },
        'verbose': {
            'format': '{levelname} {asctime} {module} [{request_id}] {message}',
            'style': '{',
        },
    },
    'filters': {
        'request_context': {
            '()': 'apps.core.middleware.LoggingFilter',
        },
    },
    'handlers': {
        'console': {
            'level': LOG_LEVEL,
            'class': 'logging.StreamHandler',
            'formatter': 'json' if JSON_LOGS else 'verbose',
            'filters': ['request_context'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'celery': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'security': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}

# Sentry Configuration
SENTRY_DSN = env('SENTRY_DSN', default=None)
SENTRY_ENVIRONMENT = env('SENTRY_ENVIRONMENT', default=APP_ENVIRONMENT)
SENTRY_RELEASE = env('SENTRY_RELEASE', default=None)

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            DjangoIntegration(),
            CeleryIntegration(),
        ],
        environment=SENTRY_ENVIRONMENT,
        release=SENTRY_RELEASE,
        traces_sample_rate=0.1 if not DEBUG else 1.0,
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
    )
