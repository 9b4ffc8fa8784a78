# ==============================================================================
# app/calculator/importer.py
# ------------------------------------------------------------------------------
# Writes validated performance rows into DriverPerformance, one record per
# driver and month.
# ==============================================================================

import logging
import pandas as pd

from app import db
from app.models import Driver, DriverPerformance

METRIC_COLUMNS = ('actual_kilometers', 'fuel_efficiency', 'on_time_delivery_rate', 'customer_rating', 'safety_score')


def _employee_key(value):
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _optional(value):
    return None if pd.isna(value) else float(value)


def import_performance(df):
    """
    Upserts performance records from a validated 'Performance' sheet.

    Rows whose employee_id matches no driver are reported, not fatal.

    Returns:
        dict: {'inserted': int, 'updated': int, 'unknown_employees': [employee_id, ...]}
    """
    drivers = {d.employee_id: d for d in Driver.query.all()}
    summary = {'inserted': 0, 'updated': 0, 'unknown_employees': []}

    for index, row in df.iterrows():
        employee_id = _employee_key(row['employee_id'])
        driver = drivers.get(employee_id)
        if driver is None:
            logging.warning(f"Excel row {index + 2}: no driver with employee_id '{employee_id}', row skipped.")
            summary['unknown_employees'].append(employee_id)
            continue

        year, month = int(row['year']), int(row['month'])
        record = DriverPerformance.query.filter_by(driver_id=driver.id, year=year, month=month).first()
        if record is None:
            record = DriverPerformance(driver_id=driver.id, year=year, month=month)
            db.session.add(record)
            summary['inserted'] += 1
        else:
            summary['updated'] += 1

        for col in METRIC_COLUMNS:
            setattr(record, col, _optional(row.get(col)))

    db.session.commit()
    logging.info(f"Performance import complete: {summary['inserted']} inserted, {summary['updated']} updated, "
                 f"{len(summary['unknown_employees'])} unknown employees.")
    return summary
