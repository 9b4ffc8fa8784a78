# tests/test_cli.py

import pandas as pd
import pytest

from app import db
from app.models import (AuditLog, CustomFormula, DriverPerformance, DriverSalaryHistory, IncentiveCalculation,
                        IncentiveSetting)


@pytest.fixture
def runner(app_with_db):
    return app_with_db.test_cli_runner()


def test_seed_is_idempotent(runner):
    result = runner.invoke(args=['seed'])
    assert result.exit_code == 0
    runner.invoke(args=['seed'])

    assert IncentiveSetting.query.count() == 4
    assert CustomFormula.query.count() == 1
    local = IncentiveSetting.query.filter_by(setting_key='incentive_divisor_local').one()
    assert local.get_value() == 1000
    export_fuel = IncentiveSetting.query.filter_by(setting_key='fuel_efficiency_bonus_export').one().get_value()
    assert [t['bonus_amount'] for t in export_fuel['tiers']] == [25, 50, 75, 100]


def test_calculate_period(runner, fleet):
    result = runner.invoke(args=['calculate', '2025', '1'])

    assert result.exit_code == 0
    assert 'Calculated 2 drivers. 1 failed.' in result.output
    assert 'FAILED Chipo Dube: No performance record for this period' in result.output
    assert IncentiveCalculation.query.count() == 2


def test_calculate_single_driver(runner, fleet):
    result = runner.invoke(args=['calculate', '2025', '1', '--driver', str(fleet['alice'].id), '--actor', 'ops'])

    assert result.exit_code == 0
    assert 'total incentive 2,100.00' in result.output
    assert AuditLog.query.one().changed_by == 'ops'


def test_calculate_single_driver_without_performance(runner, fleet):
    result = runner.invoke(args=['calculate', '2025', '1', '--driver', str(fleet['chipo'].id)])
    assert result.exit_code == 1
    assert 'No performance record for this period' in result.output


def test_calculate_rejects_invalid_month(runner, fleet):
    result = runner.invoke(args=['calculate', '2025', '13'])
    assert result.exit_code == 2


def test_transition_and_rollback(runner, calculations):
    calculation_id = str(calculations['alice'])

    result = runner.invoke(args=['transition', calculation_id, 'pending_approval'])
    assert result.exit_code == 0
    assert 'Status updated to Pending Approval' in result.output

    result = runner.invoke(args=['rollback', calculation_id])
    assert result.exit_code == 0
    assert 'Calculation rolled back successfully' in result.output
    assert db.session.get(IncentiveCalculation, calculations['alice']).status == 'draft'


def test_illegal_transition_is_an_error(runner, calculations):
    result = runner.invoke(args=['transition', str(calculations['alice']), 'paid'])
    assert result.exit_code == 1
    assert "Transition from 'draft' to 'paid' is not allowed" in result.output


def test_rollback_without_snapshot(runner, calculations):
    result = runner.invoke(args=['rollback', str(calculations['alice'])])
    assert result.exit_code == 1
    assert 'No snapshot available for rollback' in result.output


def test_bulk_transition(runner, calculations):
    result = runner.invoke(args=['bulk-transition', '2025', '1', 'draft', 'pending_approval'])
    assert result.exit_code == 0
    assert 'Updated 2 calculations to Pending Approval' in result.output


def test_what_if(runner, fleet):
    result = runner.invoke(args=['what-if', str(fleet['brian'].id), '2025', '1', '--scenario', 'Long haul=1200'])

    assert result.exit_code == 0
    assert 'Brian Ncube' in result.output
    assert 'Reach 110% Target' in result.output
    assert 'Long haul' in result.output


def test_what_if_rejects_malformed_scenario(runner, fleet):
    result = runner.invoke(args=['what-if', str(fleet['brian'].id), '2025', '1', '--scenario', 'oops'])
    assert result.exit_code == 2


def test_import_performance(runner, fleet, tmp_path):
    path = tmp_path / 'performance.xlsx'
    pd.DataFrame({'employee_id': ['D003'], 'year': [2025], 'month': [1], 'actual_kilometers': [5100]}) \
        .to_excel(path, sheet_name='Performance', index=False)

    result = runner.invoke(args=['import-performance', str(path)])

    assert result.exit_code == 0
    assert 'Imported performance: 1 new, 0 updated.' in result.output
    assert DriverPerformance.query.filter_by(driver_id=fleet['chipo'].id).one().actual_kilometers == 5100


def test_import_performance_reports_validation_errors(runner, fleet, tmp_path):
    path = tmp_path / 'performance.xlsx'
    pd.DataFrame({'employee_id': ['D003'], 'year': [2025], 'month': [1]}) \
        .to_excel(path, sheet_name='Performance', index=False)

    result = runner.invoke(args=['import-performance', str(path)])

    assert result.exit_code == 1
    assert 'missing required columns: actual_kilometers' in result.output
    assert 'nothing imported' in result.output


def test_import_performance_rejects_other_file_types(runner, fleet, tmp_path):
    path = tmp_path / 'performance.csv'
    path.write_text('employee_id,year,month,actual_kilometers\nD003,2025,1,5100\n')

    result = runner.invoke(args=['import-performance', str(path)])

    assert result.exit_code == 1
    assert "Unsupported file type '.csv'" in result.output


def test_salary(runner, fleet):
    db.session.add(DriverSalaryHistory(driver_id=fleet['alice'].id, year=2024, month=12, usd_base_salary=500,
                                       zig_base_salary=0))
    db.session.commit()

    result = runner.invoke(args=['salary', str(fleet['alice'].id), '2025', '1'])

    assert result.exit_code == 0
    assert 'USD 500.00' in result.output
    assert 'source: 2024-12' in result.output


def test_audit_log(runner, calculations):
    runner.invoke(args=['transition', str(calculations['brian']), 'pending_approval'])

    result = runner.invoke(args=['audit-log'])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0].startswith(f"[{calculations['brian']}] Updated by tester on ")
    assert lines[1].startswith('[batch] Batch Calculated by tester on ')

    result = runner.invoke(args=['audit-log', '--action', 'batch_calculate'])
    assert len(result.output.splitlines()) == 1
