"""
Email transport for order notifications.
Uses Flask-Mail for SMTP integration.
"""
import logging
from typing import Optional

from flask import current_app
from flask_mail import Mail, Message

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Keeps notification delivery a no-op in dev or misconfigured environments.
    """
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def send_email(to: str, subject: str, text: str, html: Optional[str] = None) -> bool:
    """
    Send a plain-text (optionally HTML) email.

    Returns:
        True if sent (or mail disabled), False if the transport failed
    """
    try:
        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] Email skipped for {to}: {subject}")
            return True

        msg = Message(subject=subject, recipients=[to], body=text, html=html)
        mail.send(msg)
        logger.info(f"[EMAIL] Sent '{subject}' to {to}")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] Failed to send email to {to}: {str(e)}")
        return False
