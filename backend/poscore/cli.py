# Overview: Flask CLI command groups for bootstrap, end-of-day closing, statements and sync.

# backend/poscore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# End of day:
# - python -m flask reports z-report
#   Generate the Z-report for every unreported transaction.
#
# Statements:
# - python -m flask statements generate --start 2025-06-01 --end 2025-06-30
#   Generate monthly statements for unpaid transactions in the period.
# - python -m flask statements escalate
#   Mark statements past their grace period overdue and block credit.
#
# Offline sync:
# - python -m flask sync status
# - python -m flask sync flush
#
# Inventory:
# - python -m flask inventory forecast
#   List products expected to run out within the reorder threshold.

from datetime import date

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services import inventory_service, reporting_service, statement_service, sync_service
from .services.errors import LedgerError
from .settings import LedgerSettings


def _settings() -> LedgerSettings:
    return LedgerSettings.from_config(current_app.config)


def _money(cents: int) -> str:
    return _settings().format_money(cents)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database initialized.")


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

    click.echo("PASS Database reset complete.")


@click.group('reports')
def reports_group():
    """End-of-day reporting."""


@reports_group.command('z-report')
@with_appcontext
def z_report():
    """Close the day: report every transaction not yet in a Z-report."""
    try:
        report = reporting_service.generate_z_report()
    except LedgerError as e:
        raise click.ClickException(str(e))

    if report.transactions_count == 0:
        click.echo("No unreported transactions. Nothing to close.")
        return

    click.echo(f"Z-Report {report.id}")
    click.echo(f"  Transactions:   {report.transactions_count}")
    click.echo(f"  Total sales:    {_money(report.total_sales_cents)}")
    click.echo(f"  Discounts:      {_money(report.total_discounts_cents)}")
    click.echo(f"  Returns:        {_money(report.total_returns_value_cents)}")
    click.echo(f"  Net sales:      {_money(report.net_sales_cents)}")
    click.echo(f"  Gross profit:   {_money(report.total_profit_cents)}")
    click.echo(
        "  Payments:       "
        f"cash {_money(report.cash_cents)}, card {_money(report.card_cents)}, "
        f"transfer {_money(report.transfer_cents)}, gift card {_money(report.gift_card_cents)}"
    )


@click.group('statements')
def statements_group():
    """Monthly statement commands."""


@statements_group.command('generate')
@click.option('--start', 'period_start', required=True, help='Period start (YYYY-MM-DD)')
@click.option('--end', 'period_end', required=True, help='Period end (YYYY-MM-DD)')
@with_appcontext
def generate_statements(period_start, period_end):
    try:
        start = date.fromisoformat(period_start)
        end = date.fromisoformat(period_end)
    except ValueError:
        raise click.BadParameter("dates must be YYYY-MM-DD")

    try:
        created = statement_service.generate_monthly_statements(start, end, settings=_settings())
    except LedgerError as e:
        raise click.ClickException(str(e))

    if not created:
        click.echo("No statements generated.")
        return
    for statement in created:
        click.echo(f"{statement.id}: {_money(statement.total_due_cents)} due {statement.due_date.isoformat()}")


@statements_group.command('escalate')
@with_appcontext
def escalate_statements():
    escalated = statement_service.escalate_overdue_statements(settings=_settings())
    if not escalated:
        click.echo("No statements to escalate.")
        return
    for statement in escalated:
        click.echo(f"OVERDUE {statement.id} (customer {statement.customer_id}) - credit blocked")


@click.group('sync')
def sync_group():
    """Offline queue commands."""


@sync_group.command('status')
@with_appcontext
def sync_status():
    status = sync_service.sync_status()
    click.echo(f"Online:      {status['is_online']}")
    click.echo(f"Queued:      {status['queued']}")
    click.echo(f"Last synced: {status['last_synced_at'] or 'never'}")


@sync_group.command('flush')
@with_appcontext
def sync_flush():
    try:
        flushed = sync_service.flush_offline_queue()
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"Flushed {len(flushed)} transaction(s).")
    for tx_id in flushed:
        click.echo(f"  {tx_id}")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('forecast')
@with_appcontext
def inventory_forecast():
    rows = inventory_service.inventory_forecast(_settings())
    if not rows:
        click.echo("No products need reordering.")
        return
    for row in rows:
        click.echo(
            f"{row['product_id']:>5}  {row['name']:<30} stock {row['stock']:>5}  "
            f"~{row['days_remaining']} day(s) left"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(reports_group)
    app.cli.add_command(statements_group)
    app.cli.add_command(sync_group)
    app.cli.add_command(inventory_group)
