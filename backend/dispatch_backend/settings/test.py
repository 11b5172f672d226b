"""Settings used by the test suite (pytest-django or ``manage.py test``)."""

from .base import *  # noqa: F401,F403

DEBUG = False
SECRET_KEY = "dispatch-test-secret-key-that-is-long-enough-for-hs256"

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'OPTIONS': {
            'timeout': 5,
            'transaction_mode': 'IMMEDIATE',
        },
        # File-backed so threaded tests share one database across connections
        'TEST': {
            'NAME': str(BASE_DIR / 'test_dispatch.sqlite3'),
        },
    }
}

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_BROKER_URL = "memory://"

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
