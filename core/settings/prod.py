from .base import *  # noqa: F401,F403
from .base import env

DEBUG = False

SECRET_KEY = env.str('SECRET_KEY')  # required, no default

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS')

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': env.str('POSTGRES_DB', 'store_mirror'),
        'USER': env.str('POSTGRES_USER', 'postgres'),
        'PASSWORD': env.str('POSTGRES_PASSWORD', 'postgres'),
        'HOST': env.str('POSTGRES_HOST', 'db'),
        'PORT': env.str('POSTGRES_PORT', '5432'),
    }
}

# Credentials are mandatory outside development
WOOCOMMERCE_URL = env.str('WOOCOMMERCE_URL')
WOOCOMMERCE_KEY = env.str('WOOCOMMERCE_KEY')
WOOCOMMERCE_SECRET = env.str('WOOCOMMERCE_SECRET')
