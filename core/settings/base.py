from pathlib import Path

from environs import Env

env = Env()
env.read_env(recurse=False)

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = env.str('SECRET_KEY', 'django-insecure-3v#q8k!w0l2c^t7m1x$e9r4b6n5p@z&h0y-j_d+s8u2a=f')

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', [])

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'catalog',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'core.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'core.wsgi.application'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOG_LEVEL = env.str('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'catalog': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

# Celery
CELERY_BROKER_URL = env.str('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = CELERY_BROKER_URL
# Run the catalog-writes worker with --concurrency=1 so mutations stay FIFO.
CELERY_TASK_ROUTES = {
    'catalog.tasks.apply_mutation': {'queue': 'catalog-writes'},
}
CELERY_BEAT_SCHEDULE = {
    'verify-catalog-document-every-30-min': {
        'task': 'catalog.tasks.verify_document',
        'schedule': 1800,
    },
}

# GitHub-hosted catalog document
GITHUB_API_URL = env.str('GITHUB_API_URL', 'https://api.github.com')
GITHUB_TOKEN = env.str('GITHUB_TOKEN', '')
GITHUB_OWNER = env.str('GITHUB_OWNER', 'SamPrestoo')
GITHUB_REPO = env.str('GITHUB_REPO', 'iamlookingforvintage')
GITHUB_BRANCH = env.str('GITHUB_BRANCH', 'main')

CATALOG_DOCUMENT_PATH = env.str('CATALOG_DOCUMENT_PATH', 'products.json')
CATALOG_FETCH_MAX_ATTEMPTS = env.int('CATALOG_FETCH_MAX_ATTEMPTS', 3)
CATALOG_RETRY_BASE_DELAY = env.float('CATALOG_RETRY_BASE_DELAY', 1.0)
CATALOG_RETRY_MAX_DELAY = env.float('CATALOG_RETRY_MAX_DELAY', 10.0)
CATALOG_HTTP_TIMEOUT = env.float('CATALOG_HTTP_TIMEOUT', 30.0)
CATALOG_INLINE_CONTENT_LIMIT = env.int('CATALOG_INLINE_CONTENT_LIMIT', 1_000_000)
CATALOG_MAX_DOCUMENT_BYTES = env.int('CATALOG_MAX_DOCUMENT_BYTES', 150 * 1024 * 1024)
CATALOG_WARN_DOCUMENT_BYTES = env.int('CATALOG_WARN_DOCUMENT_BYTES', 50 * 1024 * 1024)
CATALOG_CONFLICT_RETRIES = env.int('CATALOG_CONFLICT_RETRIES', 1)
CATALOG_QUEUE_PACING = env.float('CATALOG_QUEUE_PACING', 1.0)
CATALOG_QUEUE_MAXSIZE = env.int('CATALOG_QUEUE_MAXSIZE', 100)
CATALOG_RECORD_COMMITS = env.bool('CATALOG_RECORD_COMMITS', True)

# Content host client — swap via env or override in dev.py/prod.py
CATALOG_CLIENT_CLASS = env.str('CATALOG_CLIENT_CLASS', 'catalog.clients.github_client.GitHubContentClient')
