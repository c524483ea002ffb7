# Overview: Flask CLI command groups for bootstrap, manual job runs, and maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --email admin@example.com --role ADMIN --first-name Ada --last-name Byron
#   Create a user (prompts if options are omitted).
# - python -m flask users list
#   List all users with role, status and lifecycle state.
#
# Stock jobs (same semantics as the Celery beat timers):
# - python -m flask stock reconcile
#   Re-evaluate the low-stock alert of every active product.
# - python -m flask stock low-stock-report
#   Count active products below their effective threshold.
#
# Lifecycle:
# - python -m flask lifecycle purge [--dry-run]
#   Permanently remove soft-deleted records older than PURGE_WINDOW_DAYS.

import click
from datetime import timedelta
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User, VALID_ROLES, STATE_SOFT_DELETED
from .services import lifecycle_service, reconciliation_service, user_service
from .time_utils import utcnow
from .validation import StockLedgerError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the stock ledger!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask users create' to add an admin.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), prompt=True, help='Role')
@click.option('--first-name', default=None, help='First name')
@click.option('--last-name', default=None, help='Last name')
@with_appcontext
def create_user_cli(email, role, first_name, last_name):
    """Create a new user."""
    try:
        user = user_service.create_user(
            email=email,
            role=role,
            first_name=first_name,
            last_name=last_name,
        )
    except StockLedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user {user.display_name} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = user_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo(f"\n{'ID':<5} {'Email':<35} {'Role':<14} {'Status':<10} {'State':<14}")
    click.echo("-" * 80)
    for user in users:
        click.echo(
            f"{user.id:<5} {user.email:<35} {user.role:<14} {user.status:<10} {user.lifecycle_state:<14}"
        )


@click.group('stock')
def stock_group():
    """Stock alert jobs."""


@stock_group.command('reconcile')
@with_appcontext
def reconcile_cli():
    """Run the low-stock reconciliation sweep now."""
    result = reconciliation_service.run_reconciliation()
    click.echo(
        f"PASS Checked {result.checked} products: "
        f"created={result.created} updated={result.updated} resolved={result.resolved} "
        f"unchanged={result.unchanged} skipped={result.skipped} failed={result.failed}"
    )
    for failure in result.failures:
        click.echo(f"  FAIL product {failure['product_id']}: {failure['error']}")
    if result.failed:
        raise SystemExit(1)


@stock_group.command('low-stock-report')
@with_appcontext
def low_stock_report_cli():
    """Count active products below their effective threshold."""
    count = reconciliation_service.daily_low_stock_report()
    click.echo(f"{count} products below threshold")


@click.group('lifecycle')
def lifecycle_group():
    """Deletion lifecycle maintenance."""


@lifecycle_group.command('purge')
@click.option('--dry-run', is_flag=True, help='List what would be purged without deleting')
@with_appcontext
def purge_cli(dry_run):
    """Permanently remove soft-deleted records past PURGE_WINDOW_DAYS."""
    if dry_run:
        cutoff = utcnow() - timedelta(days=current_app.config["PURGE_WINDOW_DAYS"])
        products = db.session.query(Product).filter(
            Product.lifecycle_state == STATE_SOFT_DELETED,
            Product.deleted_at < cutoff,
        ).all()
        users = db.session.query(User).filter(
            User.lifecycle_state == STATE_SOFT_DELETED,
            User.deleted_at < cutoff,
        ).all()
        click.echo(f"Cutoff: {cutoff.isoformat()}Z")
        for p in products:
            click.echo(f"  product {p.id} {p.sku} {p.name} (deleted {p.deleted_at.isoformat()}Z)")
        for u in users:
            marker = " [exempt, kept]" if u.is_exempt else ""
            click.echo(f"  user {u.id} {u.email} (deleted {u.deleted_at.isoformat()}Z){marker}")
        click.echo(f"DRY RUN {len(products)} products, {len(users)} users would be considered")
        return

    result = lifecycle_service.purge_expired()
    click.echo(
        f"PASS Purged {result.products_purged} products and {result.users_purged} users "
        f"(skipped exempt: {result.skipped_exempt}, failed: {result.failed})"
    )
    if result.failed:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(lifecycle_group)
