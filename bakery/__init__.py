"""Flask application factory."""
import os

from flask import Flask, jsonify

from bakery.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize Sentry for error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.celery import CeleryIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration(), CeleryIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Initialize Flask-Mail for order notifications
    from bakery.services.email_service import init_mail
    init_mail(app)

    # Initialize database
    init_db(app)

    # Cart store (Redis with in-process fallback, or memory in tests)
    from bakery.services.cart_store import init_cart_store
    init_cart_store(app)

    # Background jobs
    from bakery.tasks import celery_init_app
    celery_init_app(app)

    # Error Handlers
    from bakery.exceptions import BakeryError

    @app.errorhandler(BakeryError)
    def handle_bakery_error(error):
        """Handle custom application exceptions."""
        if error.retryable:
            app.logger.error(f"BakeryError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"BakeryError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    # Register CLI commands
    from bakery.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
