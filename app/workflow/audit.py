# ==============================================================================
# app/workflow/audit.py
# ------------------------------------------------------------------------------
# Append-only audit trail and calculation snapshots, plus snapshot rollback.
# ==============================================================================

import logging
from datetime import datetime

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from app import db
from app.exceptions import CalculationNotFoundError, ConcurrentUpdateError, NoSnapshotError
from app.models import AuditLog, CalculationSnapshot, IncentiveCalculation

CALCULATIONS_TABLE = 'incentive_calculations'

# Fields a rollback copies back from the snapshot
ROLLBACK_FIELDS = (
    'status', 'km_incentive', 'performance_bonus', 'safety_bonus', 'deductions',
    'total_incentive', 'total_earnings', 'approved_by', 'approved_date', 'paid_date',
)
DATETIME_FIELDS = ('approved_date', 'paid_date')

ACTION_LABELS = {
    'insert': 'Created',
    'update': 'Updated',
    'delete': 'Deleted',
    'batch_calculate': 'Batch Calculated',
    'approve': 'Approved',
    'rollback': 'Rolled Back',
}


def default_actor():
    return current_app.config.get('DEFAULT_ACTOR', 'system')


def record_audit(record_id, action, old_values=None, new_values=None, changed_by=None,
                 context=None, table_name=CALCULATIONS_TABLE):
    """Adds an audit entry to the current session. The caller commits."""
    entry = AuditLog(
        table_name=table_name,
        record_id=str(record_id),
        action=action,
        old_values=old_values,
        new_values=new_values,
        changed_by=changed_by or default_actor(),
        changed_at=datetime.utcnow(),
        context=context,
    )
    db.session.add(entry)
    return entry


def create_snapshot(calculation, reason, created_by=None):
    """
    Captures the calculation as it currently stands and flushes the snapshot
    so it is written before any pending change to the calculation itself.
    """
    snapshot = CalculationSnapshot(
        calculation_id=calculation.id,
        driver_id=calculation.driver_id,
        year=calculation.year,
        month=calculation.month,
        snapshot_data=calculation.to_dict(),
        created_at=datetime.utcnow(),
        created_by=created_by or default_actor(),
        reason=reason,
    )
    db.session.add(snapshot)
    db.session.flush()
    logging.debug(f"Snapshot {snapshot.id} taken of calculation {calculation.id}: {reason}")
    return snapshot


def load_calculation_for_update(calculation_id):
    """Loads a calculation with a row lock held until the transaction ends."""
    calculation = IncentiveCalculation.query.filter_by(id=calculation_id).with_for_update().first()
    if calculation is None:
        raise CalculationNotFoundError(calculation_id)
    return calculation


def latest_snapshot(calculation_id):
    return (CalculationSnapshot.query
            .filter_by(calculation_id=calculation_id)
            .order_by(CalculationSnapshot.created_at.desc(), CalculationSnapshot.id.desc())
            .first())


def _restore_value(field, value):
    if field in DATETIME_FIELDS and value is not None:
        return datetime.fromisoformat(value)
    return value


def rollback_calculation(calculation_id, actor=None):
    """
    Restores a calculation's financial and workflow fields from its most
    recent snapshot. The snapshot itself is kept.

    Unlike every other status change, a rollback takes no snapshot of the
    state it replaces, so rolling back twice restores the same snapshot
    twice. The replaced values are kept in the audit entry's old_values.

    Raises:
        CalculationNotFoundError: Unknown calculation id.
        NoSnapshotError: The calculation has never been snapshotted.
        ConcurrentUpdateError: The row changed underneath us.
    """
    actor = actor or default_actor()
    try:
        calculation = load_calculation_for_update(calculation_id)
        snapshot = latest_snapshot(calculation_id)
        if snapshot is None:
            raise NoSnapshotError(calculation_id)

        old_values = {field: calculation.to_dict()[field] for field in ROLLBACK_FIELDS}
        data = snapshot.snapshot_data
        for field in ROLLBACK_FIELDS:
            setattr(calculation, field, _restore_value(field, data.get(field)))
        db.session.flush()

        record_audit(calculation.id, 'rollback',
                     old_values=old_values,
                     new_values={'restored_from_snapshot': snapshot.id},
                     changed_by=actor,
                     context={'reason': f'Rolled back to snapshot {snapshot.id} ({snapshot.reason})'})
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise ConcurrentUpdateError(calculation_id)
    except Exception:
        db.session.rollback()
        raise

    logging.info(f"Calculation {calculation_id} rolled back to snapshot {snapshot.id} by {actor}")
    return calculation


def list_audit_entries(record_id=None, action=None, limit=50):
    """Newest-first audit history for incentive calculations."""
    query = AuditLog.query.filter_by(table_name=CALCULATIONS_TABLE)
    if record_id is not None:
        query = query.filter_by(record_id=str(record_id))
    if action is not None:
        query = query.filter_by(action=action)
    return query.order_by(AuditLog.changed_at.desc(), AuditLog.id.desc()).limit(limit).all()


def list_snapshots(calculation_id=None, limit=50):
    query = CalculationSnapshot.query
    if calculation_id is not None:
        query = query.filter_by(calculation_id=calculation_id)
    return query.order_by(CalculationSnapshot.created_at.desc(), CalculationSnapshot.id.desc()).limit(limit).all()


def format_audit_entry(entry):
    """e.g. 'Approved by admin on 2026-01-05 10:00:00'."""
    label = ACTION_LABELS.get(entry.action, entry.action)
    return f"{label} by {entry.changed_by} on {entry.changed_at:%Y-%m-%d %H:%M:%S}"
