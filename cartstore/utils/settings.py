# cartstore/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/2")

# empty = no product catalog, stock checks and validation are skipped
PRODUCT_SERVICE_URL = os.getenv("PRODUCT_SERVICE_URL", "")

CART_TTL_SECONDS = int(os.getenv("CART_TTL_SECONDS", 24 * 60 * 60))
CART_MAX_EXTENSION_HOURS = int(os.getenv("CART_MAX_EXTENSION_HOURS", 168))
CART_CLEANUP_INTERVAL_SECONDS = float(os.getenv("CART_CLEANUP_INTERVAL_SECONDS", 60 * 60))
CART_CURRENCY = os.getenv("CART_CURRENCY", "USD")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8004))
