from .settings import *
import os

DEBUG = False
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(',')

if SECRET_KEY.startswith("dev-insecure"):
    raise RuntimeError("DJANGO_SECRET_KEY must be set in production")

CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(',')

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

# Offers must be pushed to every worker process, and expired on time
CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels_redis.core.RedisChannelLayer",
        "CONFIG": {
            "hosts": [os.getenv("REDIS_URL", CELERY_BROKER_URL)],
        },
    }
}
JOB_OFFER_SCHEDULE_EXPIRY = True

LOGGING['root']['level'] = os.getenv("LOG_LEVEL", "WARNING")
LOGGING['loggers']['services'] = {
    'handlers': ['console'],
    'level': os.getenv("DISPATCH_LOG_LEVEL", "INFO"),
    'propagate': False,
}
