# ==============================================================================
# app/workflow/service.py
# ------------------------------------------------------------------------------
# Applies workflow status changes to stored incentive calculations.
# Each change is one transaction: snapshot, then mutate, then audit.
# ==============================================================================

import logging
from datetime import datetime

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from app import db
from app.exceptions import ConcurrentUpdateError, IllegalTransitionError, IncentiveError
from app.models import IncentiveCalculation
from app.workflow.audit import create_snapshot, default_actor, load_calculation_for_update, record_audit
from app.workflow.transitions import find_transition


def transition_calculation(calculation_id, new_status, actor=None):
    """
    Moves one calculation to a new status.

    Entering 'approved' stamps approved_by/approved_date, entering 'paid'
    stamps paid_date. Returning to draft keeps those stamps for the record.

    Args:
        calculation_id (int): The IncentiveCalculation id.
        new_status (str): Target status.
        actor (str): Who is making the change.

    Returns:
        IncentiveCalculation: The updated row.

    Raises:
        IllegalTransitionError: Checked before anything is written.
        CalculationNotFoundError, ConcurrentUpdateError
    """
    changed_by = actor or default_actor()
    try:
        calculation = load_calculation_for_update(calculation_id)
        old_status = calculation.status
        if find_transition(old_status, new_status) is None:
            raise IllegalTransitionError(old_status, new_status)

        create_snapshot(calculation, f"Status changed from {old_status} to {new_status}", changed_by)

        now = datetime.utcnow()
        calculation.status = new_status
        new_values = {'status': new_status}
        if new_status == 'approved':
            calculation.approved_by = actor or current_app.config.get('APPROVER_NAME', 'admin')
            calculation.approved_date = now
            new_values.update(approved_by=calculation.approved_by, approved_date=now.isoformat())
        elif new_status == 'paid':
            calculation.paid_date = now
            new_values['paid_date'] = now.isoformat()
        db.session.flush()

        record_audit(calculation.id, 'approve' if new_status == 'approved' else 'update',
                     old_values={'status': old_status},
                     new_values=new_values,
                     changed_by=changed_by)
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise ConcurrentUpdateError(calculation_id)
    except Exception:
        db.session.rollback()
        raise

    logging.info(f"Calculation {calculation_id}: {old_status} -> {new_status} by {changed_by}")
    return calculation


def bulk_transition(year, month, from_status, to_status, actor=None):
    """
    Applies the same transition to every calculation of a period that is
    currently in ``from_status``. One failing calculation does not stop the
    others.

    Returns:
        dict: {'updated': [ids], 'failed': [{'calculation_id', 'driver_id', 'reason'}]}
    """
    if find_transition(from_status, to_status) is None:
        raise IllegalTransitionError(from_status, to_status)

    candidates = (IncentiveCalculation.query
                  .filter_by(year=year, month=month, status=from_status)
                  .order_by(IncentiveCalculation.id)
                  .all())
    targets = [(c.id, c.driver_id) for c in candidates]
    logging.info(f"Bulk transition {from_status} -> {to_status} for {year}-{month:02d}: {len(targets)} calculations")

    outcome = {'updated': [], 'failed': []}
    for calculation_id, driver_id in targets:
        try:
            transition_calculation(calculation_id, to_status, actor)
            outcome['updated'].append(calculation_id)
        except IncentiveError as e:
            logging.warning(f"  Calculation {calculation_id} not transitioned: {e}")
            outcome['failed'].append({'calculation_id': calculation_id, 'driver_id': driver_id, 'reason': str(e)})
        except Exception as e:
            logging.error(f"  Calculation {calculation_id} not transitioned: {e}", exc_info=True)
            outcome['failed'].append({'calculation_id': calculation_id, 'driver_id': driver_id,
                                      'reason': str(e) or e.__class__.__name__})
    return outcome


def delete_calculation(calculation_id, actor=None):
    """Deletes a draft calculation (and its snapshots), leaving a 'delete' audit entry."""
    changed_by = actor or default_actor()
    try:
        calculation = load_calculation_for_update(calculation_id)
        if calculation.status != 'draft':
            raise IncentiveError(f"Only draft calculations can be deleted (status is '{calculation.status}')")
        old_values = calculation.to_dict()
        db.session.delete(calculation)
        db.session.flush()
        record_audit(calculation_id, 'delete', old_values=old_values, changed_by=changed_by)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logging.info(f"Calculation {calculation_id} deleted by {changed_by}")
