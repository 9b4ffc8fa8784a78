# ==============================================================================
# app/calculator/runner.py
# ------------------------------------------------------------------------------
# Loads calculation inputs from the database, runs the engine and stores the
# results (upsert by driver and period) with their audit trail.
# ==============================================================================

import logging
from dataclasses import dataclass, field
from datetime import datetime

from app import db
from app.calculator.currency import period_base_salary_usd, resolve_period_salary
from app.calculator.engine import (CalculationConfig, batch_calculate_incentives, calculate_driver_incentive,
                                   result_to_calculation_fields)
from app.calculator.whatif import generate_default_scenarios, project_scenarios
from app.exceptions import IllegalTransitionError, IncentiveError, MissingInputError
from app.models import (BatchCalculationJob, ConversionRate, CustomFormula, Driver, DriverPerformance,
                        DriverSalaryHistory, IncentiveCalculation, IncentiveSetting, MonthlyBudget)
from app.workflow.audit import create_snapshot, default_actor, record_audit


@dataclass
class BatchRun:
    result: object
    job: object
    skipped: list = field(default_factory=list)


def _active_formulas():
    return CustomFormula.query.filter_by(is_active=True).all()


def _salary_resolver(year, month, driver_ids=None):
    history_query = DriverSalaryHistory.query
    if driver_ids is not None:
        history_query = history_query.filter(DriverSalaryHistory.driver_id.in_(driver_ids))
    history = history_query.all()
    rates = ConversionRate.query.filter_by(year=year, month=month).all()
    return lambda driver: period_base_salary_usd(driver, history, rates, year, month)


def save_calculation_result(result, actor):
    """
    Inserts or updates the calculation for the result's driver and period.

    Existing rows are reset to draft with approval data cleared; a snapshot
    is taken first when that changes their status. Paid rows are left alone.

    Returns:
        tuple: (IncentiveCalculation, action, old_values) where action is
        'insert', 'update' or 'skipped'.
    """
    fields = result_to_calculation_fields(result)
    existing = (IncentiveCalculation.query
                .filter_by(driver_id=result.driver_id, year=result.year, month=result.month)
                .with_for_update()
                .first())

    if existing is None:
        calculation = IncentiveCalculation(**fields)
        db.session.add(calculation)
        return calculation, 'insert', None

    if existing.status == 'paid':
        logging.warning(f"  Calculation {existing.id} for {result.driver_name} is already paid; not recalculated.")
        return existing, 'skipped', None

    old_values = existing.to_dict()
    if existing.status != 'draft':
        create_snapshot(existing, f"Status changed from {existing.status} to draft", actor)
    for key, value in fields.items():
        setattr(existing, key, value)
    return existing, 'update', old_values


def run_batch_calculation(year, month, actor=None):
    """
    Calculates and stores incentives for every active driver in a period.

    Writes one 'batch_calculate' audit entry for the whole run and a
    BatchCalculationJob row describing it.

    Returns:
        BatchRun
    """
    actor = actor or default_actor()
    job = BatchCalculationJob(year=year, month=month, status='processing', created_by=actor,
                              created_at=datetime.utcnow())
    db.session.add(job)
    db.session.commit()
    job_id = job.id

    try:
        drivers = Driver.query.all()
        performances = DriverPerformance.query.filter_by(year=year, month=month).all()
        budgets = MonthlyBudget.query.filter_by(year=year, month=month).all()
        config = CalculationConfig.from_settings(IncentiveSetting.query.all())

        batch = batch_calculate_incentives(drivers, performances, budgets, config, _active_formulas(),
                                           year, month, salary_resolver=_salary_resolver(year, month))

        skipped = []
        for result in batch.success:
            calculation, action, _ = save_calculation_result(result, actor)
            if action == 'skipped':
                skipped.append({'calculation_id': calculation.id, 'driver_id': result.driver_id,
                                'driver_name': result.driver_name, 'reason': 'Calculation already paid'})
        db.session.flush()

        summary = batch.summary
        record_audit('batch', 'batch_calculate',
                     new_values={
                         'year': year,
                         'month': month,
                         'success_count': summary['success_count'],
                         'failed_count': summary['failed_count'],
                         'skipped_count': len(skipped),
                         'total_incentives': summary['total_incentives'],
                     },
                     changed_by=actor,
                     context={'batch_id': job_id})

        job.status = 'completed'
        job.total_drivers = summary['total_processed']
        job.processed_count = summary['success_count'] + summary['failed_count']
        job.success_count = summary['success_count']
        job.failed_count = summary['failed_count']
        job.total_incentives = summary['total_incentives']
        job.completed_at = datetime.utcnow()
        job.error_log = batch.failed
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logging.error(f"Batch calculation for {year}-{month:02d} failed: {e}", exc_info=True)
        job = db.session.get(BatchCalculationJob, job_id)
        job.status = 'failed'
        job.completed_at = datetime.utcnow()
        job.error_log = [{'reason': str(e)}]
        db.session.commit()
        raise

    return BatchRun(result=batch, job=job, skipped=skipped)


def _calculate_for_driver(driver, year, month):
    performance = DriverPerformance.query.filter_by(driver_id=driver.id, year=year, month=month).first()
    if performance is None:
        raise MissingInputError(driver.id, year, month)
    budget = MonthlyBudget.query.filter_by(year=year, month=month, driver_type=driver.driver_type).first()
    type_config = CalculationConfig.from_settings(IncentiveSetting.query.all()).for_driver_type(driver.driver_type)
    base_salary = _salary_resolver(year, month, driver_ids=[driver.id])(driver)
    return calculate_driver_incentive(driver, performance, budget, type_config.divisor, _active_formulas(),
                                      type_config.fuel_config, base_salary=base_salary)


def _get_driver(driver_id):
    driver = db.session.get(Driver, driver_id)
    if driver is None:
        raise IncentiveError(f'Driver {driver_id} not found')
    return driver


def recalculate_driver(driver_id, year, month, actor=None):
    """
    Calculates and stores one driver's incentive for a period.

    Raises:
        MissingInputError: No performance record for the period.
        IllegalTransitionError: The stored calculation is already paid.
    """
    actor = actor or default_actor()
    driver = _get_driver(driver_id)
    result = _calculate_for_driver(driver, year, month)
    try:
        calculation, action, old_values = save_calculation_result(result, actor)
        if action == 'skipped':
            raise IllegalTransitionError('paid', 'draft')
        db.session.flush()
        record_audit(calculation.id, action, old_values=old_values, new_values=calculation.to_dict(),
                     changed_by=actor)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logging.info(f"Recalculated {result.driver_name} for {year}-{month:02d}: "
                 f"total incentive {result.total_incentive:,.2f}")
    return calculation


def what_if_for_driver(driver_id, year, month, extra_scenarios=()):
    """
    Computes the driver's current result (without storing it) and projects
    the default scenarios plus any extra (name, additional_km) pairs.

    Returns:
        tuple: (CalculationResult, list[WhatIfScenario])
    """
    driver = _get_driver(driver_id)
    current = _calculate_for_driver(driver, year, month)
    scenarios = generate_default_scenarios(current.actual_km, current.target_km)
    scenarios.extend(extra_scenarios)
    return current, project_scenarios(current, scenarios)


def salary_for_driver(driver_id, year, month):
    """SalaryResolution for a driver and period, read from the database."""
    driver = _get_driver(driver_id)
    history = DriverSalaryHistory.query.filter_by(driver_id=driver.id).all()
    rates = ConversionRate.query.filter_by(year=year, month=month).all()
    return resolve_period_salary(driver, history, rates, year, month)
