from pathlib import Path

from environs import Env

env = Env()
env.read_env(recurse=False)

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = env.str('SECRET_KEY', 'django-insecure-3f#w0b8q!m2t$z6k@r1x^c9v&h4n_p7y*l5e=d0g(s)a+j8u')

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', [])

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'mirror',
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': env.str('SQLITE_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOG_LEVEL = env.str('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'mirror': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

# Celery
CELERY_BROKER_URL = env.str('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = CELERY_BROKER_URL

# WooCommerce API
WOOCOMMERCE_URL = env.str('WOOCOMMERCE_URL', '')
WOOCOMMERCE_KEY = env.str('WOOCOMMERCE_KEY', '')
WOOCOMMERCE_SECRET = env.str('WOOCOMMERCE_SECRET', '')
WOOCOMMERCE_TIMEOUT = env.int('WOOCOMMERCE_TIMEOUT', 30)

# Mirror engine
MIRROR_CLIENT_CLASS = env.str('MIRROR_CLIENT_CLASS', 'mirror.clients.woocommerce.WooCommerceClient')
MIRROR_PAGE_SIZE = env.int('MIRROR_PAGE_SIZE', 100)
MIRROR_SYNC_LOOKBACK_DAYS = env.int('MIRROR_SYNC_LOOKBACK_DAYS', 30)
MIRROR_RETENTION_DAYS = env.int('MIRROR_RETENTION_DAYS', 90)
MIRROR_RETENTION_PROTECT_FRESH_PRODUCTS = env.bool('MIRROR_RETENTION_PROTECT_FRESH_PRODUCTS', False)

# Cadences are crontab expressions (minute hour day month weekday)
MIRROR_SYNC_CRON = env.str('MIRROR_SYNC_CRON', '0 12 * * *')
MIRROR_SYNC_TIMEZONE = env.str('MIRROR_SYNC_TIMEZONE', 'UTC')
MIRROR_RETENTION_CRON = env.str('MIRROR_RETENTION_CRON', '0 2 * * 0')
MIRROR_RETENTION_TIMEZONE = env.str('MIRROR_RETENTION_TIMEZONE', 'UTC')
