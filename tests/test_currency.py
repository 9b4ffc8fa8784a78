# tests/test_currency.py

import pytest

from app.calculator.currency import (period_base_salary_usd, resolve_conversion_rate, resolve_period_salary,
                                     resolve_salary_components)
from app.models import ConversionRate, Driver, DriverSalaryHistory


def make_driver(**salary):
    fields = {'base_salary': 0, 'usd_base_salary': 0, 'zig_base_salary': 0}
    fields.update(salary)
    return Driver(id=1, employee_id='D001', first_name='Alice', last_name='Moyo', driver_type='local',
                  status='active', **fields)


def history(year, month, usd, zig, driver_id=1):
    return DriverSalaryHistory(driver_id=driver_id, year=year, month=month, usd_base_salary=usd,
                               zig_base_salary=zig)


def test_exact_period_match_wins():
    records = [history(2025, 1, 400, 0), history(2025, 2, 450, 1000), history(2025, 3, 500, 0)]
    assert resolve_salary_components(make_driver(), records, 2025, 2) == (450, 1000, 2025, 2)


def test_nearest_earlier_record_is_used():
    records = [history(2024, 11, 300, 0), history(2025, 1, 400, 0), history(2025, 3, 500, 0)]
    assert resolve_salary_components(make_driver(), records, 2025, 2) == (400, 0, 2025, 1)


def test_later_records_are_never_used():
    records = [history(2025, 3, 500, 0)]
    driver = make_driver(usd_base_salary=350)
    assert resolve_salary_components(driver, records, 2025, 2) == (350, 0, None, None)


def test_other_drivers_history_is_ignored():
    records = [history(2025, 2, 999, 0, driver_id=2)]
    assert resolve_salary_components(make_driver(usd_base_salary=350), records, 2025, 2)[0] == 350


def test_combined_base_salary_used_when_split_is_empty():
    driver = make_driver(base_salary=700, usd_base_salary=0, zig_base_salary=None)
    assert resolve_salary_components(driver, [], 2025, 2) == (700, 0, None, None)


def test_conversion_rate_defaults_to_one():
    rates = [ConversionRate(year=2025, month=1, rate=26.5)]
    assert resolve_conversion_rate(rates, 2025, 1) == 26.5
    assert resolve_conversion_rate(rates, 2025, 2) == 1


def test_period_salary_in_usd():
    records = [history(2025, 1, 500, 2500)]
    rates = [ConversionRate(year=2025, month=1, rate=25)]

    resolution = resolve_period_salary(make_driver(), records, rates, 2025, 1)

    assert resolution.total_usd == pytest.approx(600)
    assert (resolution.source_year, resolution.source_month) == (2025, 1)
    assert period_base_salary_usd(make_driver(), records, rates, 2025, 1) == pytest.approx(600)


def test_zig_without_rate_is_taken_at_par():
    driver = make_driver(usd_base_salary=500, zig_base_salary=100)
    assert period_base_salary_usd(driver, [], [], 2025, 1) == pytest.approx(600)
