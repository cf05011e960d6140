"""Celery wiring: tasks run inside the Flask application context."""
from celery import Celery, Task
from flask import Flask


def celery_init_app(app: Flask) -> Celery:
    class FlaskTask(Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.name, task_cls=FlaskTask)
    celery_app.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_always_eager=app.config.get('CELERY_TASK_ALWAYS_EAGER', False),
        task_ignore_result=True,
        timezone='UTC',
    )

    # Explicitly import tasks so Celery registers them
    celery_app.conf.imports = (
        'bakery.tasks.notifications',
        'bakery.tasks.carts',
    )

    celery_app.conf.beat_schedule = {
        'sweep-guest-carts': {
            'task': 'bakery.tasks.carts.sweep_guest_carts',
            'schedule': float(app.config.get('GUEST_CART_SWEEP_INTERVAL', 3600)),
        },
    }

    celery_app.set_default()
    app.extensions['celery'] = celery_app
    return celery_app
