"""
Flask CLI commands for back office maintenance.

Commands:
- flask init-db: Create all tables
- flask set-currency: Set the currency symbol shown on purchase forms
"""

import click
from backoffice.database import create_all, get_session
from backoffice.models import Setting


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table that does not exist yet."""
        create_all()
        click.echo(click.style('Tables created.', fg='green'))

    @app.cli.command('set-currency')
    @click.argument('symbol')
    def set_currency(symbol):
        """Store the currency symbol used by purchase forms."""
        symbol = symbol.strip()
        if not symbol or len(symbol) > 8:
            click.echo(click.style('Currency symbol must have 1 to 8 characters.', fg='red'))
            return

        session = get_session()
        try:
            Setting.set_value(session, Setting.CURRENCY_SYMBOL, symbol)
            session.commit()
        except Exception as e:
            session.rollback()
            click.echo(click.style(f'Error saving currency: {str(e)}', fg='red'))
            return

        from backoffice.services.cache_service import get_cache
        from backoffice.services.purchase_service import PURCHASE_FORM_CACHE_MODULE
        get_cache().invalidate_module(PURCHASE_FORM_CACHE_MODULE)

        click.echo(click.style(f'Currency set to {symbol}', fg='green'))
