"""Configuration module for the bakery ordering backend."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'bakery')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'bakery')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'bakery')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Cart storage
    # 'redis' uses the shared cache (falls back to process memory when down),
    # 'memory' keeps carts in this process only.
    CART_STORE_BACKEND = os.getenv('CART_STORE_BACKEND', 'redis')
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CART_KEY_PREFIX = os.getenv('CART_KEY_PREFIX', 'cart')
    CACHE_SOCKET_TIMEOUT = float(os.getenv('CACHE_SOCKET_TIMEOUT', '0.5'))  # seconds
    GUEST_CART_TTL_DAYS = int(os.getenv('GUEST_CART_TTL_DAYS', '7'))

    # Orders
    ORDER_NUMBER_PREFIX = os.getenv('ORDER_NUMBER_PREFIX', 'ORD')
    # Invalid promo codes at checkout degrade to "no discount" instead of failing the order
    PROMO_SOFT_FAIL = os.getenv('PROMO_SOFT_FAIL', 'true').lower() == 'true'
    # Put cancelled order quantities back on the shelf
    RESTORE_STOCK_ON_CANCEL = os.getenv('RESTORE_STOCK_ON_CANCEL', 'false').lower() == 'true'

    # Business Information (for notifications)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'Sweet Crumbs Bakery')
    BUSINESS_PHONE = os.getenv('BUSINESS_PHONE', '')

    # Email configuration
    MAIL_SERVER = os.getenv('SMTP_HOST', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('SMTP_PORT', 587))
    MAIL_USE_TLS = True
    MAIL_USE_SSL = False
    MAIL_USERNAME = os.getenv('SMTP_USER') or ''
    MAIL_PASSWORD = os.getenv('SMTP_PASSWORD') or ''
    MAIL_DEFAULT_SENDER = (
        os.getenv('SMTP_FROM')
        or MAIL_USERNAME
        or 'no-reply@localhost'
    )
    MAIL_SUPPRESS_SEND = os.getenv('MAIL_SUPPRESS_SEND', 'false').lower() == 'true'

    # Celery (notifications + guest cart sweep)
    CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://redis:6379/1')
    CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', 'redis://redis:6379/2')
    CELERY_TASK_ALWAYS_EAGER = os.getenv('CELERY_TASK_ALWAYS_EAGER', 'false').lower() == 'true'
    GUEST_CART_SWEEP_INTERVAL = float(os.getenv('GUEST_CART_SWEEP_INTERVAL', '3600'))  # seconds


class TestConfig(Config):
    """Configuration for the test suite: in-memory database and cart store."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    CART_STORE_BACKEND = 'memory'
    MAIL_SUPPRESS_SEND = True
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True
