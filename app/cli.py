# ==============================================================================
# app/cli.py
# ------------------------------------------------------------------------------
# Flask CLI commands: the operator surface of the incentive engine.
# ==============================================================================

import os

import click
from flask import current_app

from app.exceptions import IncentiveError
from app.models import AUDIT_ACTIONS, CALCULATION_STATUSES


def _parse_scenario(value):
    name, sep, km = value.rpartition('=')
    if not sep or not name:
        raise click.BadParameter(f"'{value}' must look like NAME=KM")
    try:
        return name, float(km)
    except ValueError:
        raise click.BadParameter(f"'{km}' is not a number")


def register_commands(app):
    """Attaches every CLI command to the application."""

    @app.cli.command('seed')
    def seed():
        """Seeds the database with default settings and formulas."""
        from app.seed import seed_data
        seed_data()
        current_app.logger.info('Database has been seeded with default values.')

    @app.cli.command('calculate')
    @click.argument('year', type=int)
    @click.argument('month', type=click.IntRange(1, 12))
    @click.option('--driver', 'driver_id', type=int, help='Recalculate a single driver only.')
    @click.option('--actor', help='Name recorded in the audit log.')
    def calculate(year, month, driver_id, actor):
        """Calculates incentives for a period."""
        from app.calculator.runner import recalculate_driver, run_batch_calculation
        try:
            if driver_id is not None:
                calculation = recalculate_driver(driver_id, year, month, actor)
                click.echo(f'Calculation {calculation.id}: total incentive {calculation.total_incentive:,.2f}, '
                           f'total earnings {calculation.total_earnings:,.2f}')
                return
            run = run_batch_calculation(year, month, actor)
        except IncentiveError as e:
            raise click.ClickException(e.message)

        summary = run.result.summary
        click.echo(f"Calculated {summary['success_count']} drivers. {summary['failed_count']} failed.")
        click.echo(f"Total incentives: {summary['total_incentives']:,.2f}  "
                   f"Total earnings: {summary['total_earnings']:,.2f}")
        for failure in run.result.failed:
            click.echo(f"  FAILED {failure['driver_name']}: {failure['reason']}")
        for skipped in run.skipped:
            click.echo(f"  SKIPPED {skipped['driver_name']}: {skipped['reason']}")

    @app.cli.command('transition')
    @click.argument('calculation_id', type=int)
    @click.argument('status', type=click.Choice(CALCULATION_STATUSES))
    @click.option('--actor', help='Name recorded as approver / in the audit log.')
    def transition(calculation_id, status, actor):
        """Moves one calculation to a new workflow status."""
        from app.workflow.service import transition_calculation
        from app.workflow.transitions import get_status_label
        try:
            calculation = transition_calculation(calculation_id, status, actor)
        except IncentiveError as e:
            raise click.ClickException(e.message)
        click.echo(f'Status updated to {get_status_label(calculation.status)}')

    @app.cli.command('bulk-transition')
    @click.argument('year', type=int)
    @click.argument('month', type=click.IntRange(1, 12))
    @click.argument('from_status', type=click.Choice(CALCULATION_STATUSES))
    @click.argument('to_status', type=click.Choice(CALCULATION_STATUSES))
    @click.option('--actor', help='Name recorded as approver / in the audit log.')
    def bulk_transition_command(year, month, from_status, to_status, actor):
        """Moves every calculation of a period from one status to another."""
        from app.workflow.service import bulk_transition
        from app.workflow.transitions import get_status_label
        try:
            outcome = bulk_transition(year, month, from_status, to_status, actor)
        except IncentiveError as e:
            raise click.ClickException(e.message)
        click.echo(f"Updated {len(outcome['updated'])} calculations to {get_status_label(to_status)}")
        for failure in outcome['failed']:
            click.echo(f"  FAILED calculation {failure['calculation_id']}: {failure['reason']}")

    @app.cli.command('rollback')
    @click.argument('calculation_id', type=int)
    @click.option('--actor', help='Name recorded in the audit log.')
    def rollback(calculation_id, actor):
        """Restores a calculation from its most recent snapshot."""
        from app.workflow.audit import rollback_calculation
        try:
            rollback_calculation(calculation_id, actor)
        except IncentiveError as e:
            raise click.ClickException(e.message)
        click.echo('Calculation rolled back successfully')

    @app.cli.command('what-if')
    @click.argument('driver_id', type=int)
    @click.argument('year', type=int)
    @click.argument('month', type=click.IntRange(1, 12))
    @click.option('--scenario', 'scenarios', multiple=True, help='Extra scenario as NAME=KM.')
    def what_if(driver_id, year, month, scenarios):
        """Projects a driver's incentive under additional-kilometer scenarios."""
        from app.calculator.runner import what_if_for_driver
        extra = [_parse_scenario(s) for s in scenarios]
        try:
            current, projections = what_if_for_driver(driver_id, year, month, extra)
        except IncentiveError as e:
            raise click.ClickException(e.message)
        click.echo(f'{current.driver_name}: {current.actual_km:,.0f} km, '
                   f'incentive {current.total_incentive:,.2f}, achievement {current.achievement:.1f}%')
        for p in projections:
            click.echo(f'  {p.scenario_name:<20} {p.projected_km:>10,.0f} km  '
                       f'incentive {p.projected_incentive:>10,.2f} ({p.difference["incentive"]:+,.2f})  '
                       f'achievement {p.projected_achievement:.1f}%')

    @app.cli.command('import-performance')
    @click.argument('filepath', type=click.Path(exists=True, dir_okay=False))
    def import_performance_command(filepath):
        """Imports monthly performance records from an .xlsx workbook."""
        from app.calculator.importer import import_performance
        from app.calculator.schema import PERFORMANCE_SHEET
        from app.calculator.validator import validate_performance_file
        extension = os.path.splitext(filepath)[1].lower()
        if extension not in current_app.config['ALLOWED_EXTENSIONS']:
            raise click.ClickException(f"Unsupported file type '{extension}'; expected one of: "
                                       f"{', '.join(sorted(current_app.config['ALLOWED_EXTENSIONS']))}")
        dataframes, errors = validate_performance_file(filepath)
        if errors:
            for error in errors:
                click.echo(error, err=True)
            raise click.ClickException(f'{len(errors)} validation error(s); nothing imported.')
        summary = import_performance(dataframes[PERFORMANCE_SHEET])
        click.echo(f"Imported performance: {summary['inserted']} new, {summary['updated']} updated.")
        if summary['unknown_employees']:
            click.echo(f"Unknown employee ids: {', '.join(summary['unknown_employees'])}")

    @app.cli.command('salary')
    @click.argument('driver_id', type=int)
    @click.argument('year', type=int)
    @click.argument('month', type=click.IntRange(1, 12))
    def salary(driver_id, year, month):
        """Shows the base salary that applies to a driver for a period."""
        from app.calculator.runner import salary_for_driver
        try:
            resolution = salary_for_driver(driver_id, year, month)
        except IncentiveError as e:
            raise click.ClickException(e.message)
        source = (f'{resolution.source_year}-{resolution.source_month:02d}'
                  if resolution.source_year is not None else 'driver record')
        click.echo(f'USD {resolution.usd_base_salary:,.2f} + ZIG {resolution.zig_base_salary:,.2f} '
                   f'@ {resolution.conversion_rate:g} = USD {resolution.total_usd:,.2f} (source: {source})')

    @app.cli.command('audit-log')
    @click.option('--record-id', help='Only entries for this calculation id (or "batch").')
    @click.option('--action', type=click.Choice(AUDIT_ACTIONS))
    @click.option('--limit', type=int, default=50, show_default=True)
    def audit_log(record_id, action, limit):
        """Lists recent audit entries for incentive calculations."""
        from app.workflow.audit import format_audit_entry, list_audit_entries
        for entry in list_audit_entries(record_id=record_id, action=action, limit=limit):
            click.echo(f'[{entry.record_id}] {format_audit_entry(entry)}')
