# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/tms/cli.py
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
# Report stages:
# - python -m flask stages init --org-id 1
#   Seed the default report stage pipeline (idempotent).
# - python -m flask stages list --org-id 1
#   Show the pipeline in display order.
#
# Payroll:
# - python -m flask payroll driver --org-id 1 --driver-id 7 --start 2024-01-01 --end 2024-01-31
#   Print a driver's settlements (add --mode STATUS_CREATED_AT for the legacy gate).
#
# Trips:
# - python -m flask trips missing-bol --org-id 1 [--mark]
#   List delivered trips without a received bill of lading; --mark schedules reminders.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization
from .services import payroll_service, report_stage_service, trip_service
from .validation import TmsError


def _require_org(org_id: int) -> Organization:
    org = db.session.get(Organization, org_id)
    if not org:
        raise click.ClickException(f"Organization {org_id} not found")
    return org


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask stages init --org-id <id>' per organization.")


@click.group('stages')
def stages_group():
    """Report stage catalog commands."""


@stages_group.command('init')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def init_stages(org_id):
    """Seed the default report stages for an organization."""
    org = _require_org(org_id)
    stages = report_stage_service.initialize_report_stages(org.id)
    click.echo(f"PASS {org.name}: {len(stages)} report stages configured")


@stages_group.command('list')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def list_stages(org_id):
    """List report stages in display order."""
    _require_org(org_id)
    stages = report_stage_service.list_report_stages(org_id, include_inactive=True)

    if not stages:
        click.echo("No report stages found. Run 'stages init' first.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Order':<7} {'Type':<28} {'Name':<30} {'Active'}")
    click.echo("="*80)
    for stage in stages:
        active_str = "Yes" if stage.is_active else "No"
        click.echo(f"{stage.id:<5} {stage.display_order:<7} {stage.type or '-':<28} {stage.name:<30} {active_str}")
    click.echo("="*80 + "\n")


@click.group('payroll')
def payroll_group():
    """Driver payroll reports."""


@payroll_group.command('driver')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--driver-id', type=int, required=True, help='Driver ID')
@click.option('--start', required=True, help='Start date (YYYY-MM-DD or ISO datetime)')
@click.option('--end', required=True, help='End date (YYYY-MM-DD or ISO datetime)')
@click.option('--stage-types', default='DELIVERED,COMPLETED', show_default=True, help='Comma-separated payable stage types')
@click.option('--mode', type=click.Choice(sorted(payroll_service.VALID_MODES)), default=None, help='Override the organization date mode')
@with_appcontext
def driver_payroll(org_id, driver_id, start, end, stage_types, mode):
    """Print a driver's payroll settlements."""
    _require_org(org_id)
    try:
        settlements = payroll_service.resolve_driver_payroll(
            org_id,
            driver_id,
            start,
            end,
            [s for s in stage_types.split(",") if s.strip()],
            mode=mode,
        )
    except TmsError as e:
        raise click.ClickException(e.message)

    if not settlements:
        click.echo("No payable trips in range.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'Trip':<18} {'Status':<14} {'Start':<22} {'End':<22} {'Amount':>18}")
    click.echo("="*100)
    for row in settlements:
        click.echo(
            f"{row['trip_code']:<18} {row['current_status']:<14} {row['start_date'] or '-':<22} "
            f"{row['end_date'] or '-':<22} {row['amount'] + ' ' + row['unit']:>18}"
        )
    click.echo("="*100)
    for total in payroll_service.summarize_payroll(settlements):
        click.echo(f"TOTAL {total['trip_count']} trips: {total['total_amount']} {total['unit']}")
    click.echo("")


@click.group('trips')
def trips_group():
    """Trip maintenance commands."""


@trips_group.command('missing-bol')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--mark', is_flag=True, help='Schedule reminders for the listed trips')
@with_appcontext
def missing_bol(org_id, mark):
    """List delivered trips still missing a received bill of lading."""
    _require_org(org_id)
    trips = trip_service.list_trips_missing_bill_of_lading(org_id)
    if not trips:
        click.echo("No trips are missing a bill of lading.")
        return

    for trip in trips:
        click.echo(f"{trip['code']:<18} {trip['last_status_type']:<14} BOL={trip['bill_of_lading'] or '-'}")

    if mark:
        count = trip_service.mark_notification_scheduled(org_id, [t["id"] for t in trips])
        click.echo(f"PASS Scheduled reminders for {count} trips")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stages_group)
    app.cli.add_command(payroll_group)
    app.cli.add_command(trips_group)
