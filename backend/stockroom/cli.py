# Overview: Flask CLI command groups for schema bootstrap, ledger checks and operator maintenance.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stock ledger:
# - python -m flask stock reconcile
#   List items whose cached quantity differs from the movement ledger.
# - python -m flask stock reconcile --fix
#   Rebuild those quantities from the ledger.
#
# Operator account:
# - python -m flask admin hash-password
#   Print a bcrypt hash for ADMIN_PASSWORD_HASH (prompts for the password).
# - python -m flask admin cleanup-sessions
#   Delete expired/revoked sessions past the retention window.
# - python -m flask admin revoke-sessions --yes
#   Log out every active session.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services.auth_service import hash_password
from .services.ledger_service import LedgerError
from .services import reconcile_service, session_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Schema is up to date")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@click.group('stock')
def stock_group():
    """Stock ledger inspection and repair."""


@stock_group.command('reconcile')
@click.option('--fix', is_flag=True, help='Rewrite cached quantities from the ledger')
@with_appcontext
def reconcile(fix):
    """Compare each item's cached quantity with its movement ledger."""
    try:
        divergences = reconcile_service.reconcile_items(repair=fix)
    except LedgerError as e:
        raise click.ClickException(str(e))

    if not divergences:
        click.echo("PASS All item quantities match the ledger")
        return

    for d in divergences:
        marker = "FIXED" if d.repaired else "DIFF "
        click.echo(f"{marker} {d.code}: cached={d.cached} ledger={d.expected}")

    if not fix:
        click.echo(f"\n{len(divergences)} item(s) differ. Re-run with --fix to rebuild them.")


@click.group('admin')
def admin_group():
    """Operator account and session commands."""


@admin_group.command('hash-password')
@click.password_option(help='Password to hash')
def hash_password_cli(password):
    """Print a bcrypt hash suitable for ADMIN_PASSWORD_HASH."""
    click.echo(hash_password(password))


@admin_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired and revoked sessions past the retention window."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} session(s)")


@admin_group.command('revoke-sessions')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def revoke_sessions_cli(yes):
    """Log out every active session."""
    if not yes:
        click.confirm("WARN This will log out every active session. Continue?", abort=True)
    count = session_service.revoke_all_sessions("Revoked from CLI")
    click.echo(f"PASS Revoked {count} session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(admin_group)
