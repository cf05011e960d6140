"""
Flask CLI commands for maintenance.

Commands:
- flask init-db: Create database tables
- flask carts sweep: Remove expired guest carts
- flask carts stats: Show stored cart counts
- flask carts extend: Push a guest cart's expiry forward
- flask create-promo: Create a promo code
"""

from datetime import timezone

import click
from flask import current_app
from flask.cli import AppGroup

from bakery.database import create_all, get_session
from bakery.exceptions import BakeryError
from bakery.services.cart_cleanup_service import cart_statistics, extend_guest_cart, sweep_expired_guest_carts
from bakery.services.cart_store import get_cart_store
from bakery.services.promo_service import create_promo_code

carts_cli = AppGroup('carts', help='Cart store maintenance.')


def _prefix():
    return current_app.config.get('CART_KEY_PREFIX', 'cart')


@carts_cli.command('sweep')
def sweep_carts():
    """Delete guest carts past their expiry."""
    result = sweep_expired_guest_carts(get_cart_store(), _prefix())
    click.echo(f"Cleaned: {result['cleaned']}, Errors: {result['errors']}")


@carts_cli.command('stats')
def carts_stats():
    """Show user/guest cart counts."""
    stats = cart_statistics(get_cart_store(), _prefix())
    for name, value in stats.items():
        click.echo(f"{name}: {value}")


@carts_cli.command('extend')
@click.argument('session_id')
@click.option('--days', default=7, show_default=True, type=int)
def extend_cart(session_id, days):
    """Extend a guest cart's expiry."""
    if extend_guest_cart(get_cart_store(), session_id, days, _prefix()):
        click.echo(click.style(f"Cart {session_id} extended by {days} days", fg='green'))
    else:
        click.echo(click.style(f"No cart for session {session_id}", fg='red'))


def init_cli_commands(app):
    """Register CLI commands with Flask app."""
    app.cli.add_command(carts_cli)

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        create_all()
        click.echo(click.style('Database tables created', fg='green'))

    @app.cli.command('create-promo')
    @click.option('--code', required=True, help='Promo code (stored upper-case)')
    @click.option('--type', 'discount_type', type=click.Choice(['percent', 'fixed']), default='percent')
    @click.option('--amount', required=True, help='Percentage or fixed amount')
    @click.option('--valid-from', type=click.DateTime(formats=['%Y-%m-%d']), required=True)
    @click.option('--valid-to', type=click.DateTime(formats=['%Y-%m-%d']), required=True)
    @click.option('--usage-limit', type=int, default=None)
    def create_promo(code, discount_type, amount, valid_from, valid_to, usage_limit):
        """Create a promo code."""
        session = get_session()
        try:
            promo = create_promo_code(
                session, code, discount_type, amount,
                valid_from.replace(tzinfo=timezone.utc),
                valid_to.replace(hour=23, minute=59, second=59, tzinfo=timezone.utc),
                usage_limit
            )
            session.commit()
            click.echo(click.style(f"Promo {promo.code} created (ID: {promo.id})", fg='green'))
        except BakeryError as e:
            session.rollback()
            click.echo(click.style(f"Error creating promo: {e.message}", fg='red'))
