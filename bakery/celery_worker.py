"""
Celery entry point.

    celery -A bakery.celery_worker worker --loglevel=info
    celery -A bakery.celery_worker beat --loglevel=info
"""
import os

from bakery import create_app

flask_app = create_app(os.getenv('APP_CONFIG', 'config.Config'))
celery_app = flask_app.extensions['celery']
