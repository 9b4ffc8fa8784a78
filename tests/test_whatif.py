# tests/test_whatif.py

import pytest

from app.calculator.bonus import FuelEfficiencyConfig
from app.calculator.engine import calculate_driver_incentive
from app.calculator.whatif import generate_default_scenarios, project_scenarios
from app.models import Driver, DriverPerformance, MonthlyBudget


@pytest.fixture
def current():
    driver = Driver(id=7, employee_id='D007', first_name='Tariro', last_name='Chari', driver_type='local',
                    status='active', base_salary=800)
    perf = DriverPerformance(driver_id=7, year=2025, month=3, actual_kilometers=2500,
                             safety_score=96, on_time_delivery_rate=99, customer_rating=4.9)
    budget = MonthlyBudget(year=2025, month=3, driver_type='local', budgeted_kilometers=3000, truck_count=1)
    return calculate_driver_incentive(driver, perf, budget, divisor=1000)


def test_default_scenarios_below_target():
    scenarios = generate_default_scenarios(2500, 3000)
    assert scenarios == [
        ('Reach 100% Target', 500),
        ('+10% More KM', 250),
        ('+500 KM', 500),
        ('+1,000 KM', 1000),
        ('Reach 110% Target', 800),
    ]


def test_target_scenarios_dropped_once_exceeded():
    names = [name for name, _ in generate_default_scenarios(3400, 3000)]
    assert names == ['+10% More KM', '+500 KM', '+1,000 KM']


def test_reach_100_dropped_between_100_and_110_percent():
    names = [name for name, _ in generate_default_scenarios(3100, 3000)]
    assert 'Reach 100% Target' not in names
    assert 'Reach 110% Target' in names


def test_ten_percent_rounds_half_up():
    assert dict(generate_default_scenarios(2505, 0))['+10% More KM'] == 251
    assert dict(generate_default_scenarios(2504, 0))['+10% More KM'] == 250


def test_projection_of_extra_500_km(current):
    assert current.total_incentive == pytest.approx(2500 / 3 + 1000)

    projection = project_scenarios(current, [('+500 KM', 500)])[0]

    assert projection.projected_km == 3000
    assert projection.projected_incentive == pytest.approx(2000)
    assert projection.projected_earnings == pytest.approx(2800)
    assert projection.projected_achievement == pytest.approx(100)
    assert projection.difference['km'] == 500
    assert projection.difference['incentive'] == pytest.approx(2000 - current.total_incentive)
    assert projection.difference['earnings'] == pytest.approx(2800 - current.total_earnings)
    assert projection.difference['achievement'] == pytest.approx(100 - current.achievement)


def test_every_default_scenario_is_projected(current):
    projections = project_scenarios(current, generate_default_scenarios(current.actual_km, current.target_km))
    assert [p.scenario_name for p in projections][-1] == 'Reach 110% Target'
    assert len(projections) == 5
    assert projections[-1].projected_km == 3300


def test_fuel_bonus_is_not_projected():
    driver = Driver(id=8, employee_id='D008', first_name='Rudo', last_name='Banda', driver_type='local',
                    status='active', base_salary=500)
    perf = DriverPerformance(driver_id=8, year=2025, month=3, actual_kilometers=3000, fuel_efficiency=2.1)
    budget = MonthlyBudget(year=2025, month=3, driver_type='local', budgeted_kilometers=3000, truck_count=1)
    fuel = FuelEfficiencyConfig(enabled=True, tiers=[{'min_efficiency': 2, 'max_efficiency': 3, 'bonus_amount': 50}])
    current = calculate_driver_incentive(driver, perf, budget, divisor=1000, fuel_config=fuel)

    projection = project_scenarios(current, [('nothing extra', 0)])[0]

    assert current.total_incentive == pytest.approx(1050)
    assert projection.projected_incentive == pytest.approx(1000)
    assert projection.difference['incentive'] == pytest.approx(-50)


def test_no_budget_projects_zero_achievement():
    driver = Driver(id=9, employee_id='D009', first_name='Nyasha', last_name='Phiri', driver_type='export',
                    status='active', base_salary=900)
    perf = DriverPerformance(driver_id=9, year=2025, month=3, actual_kilometers=4000)
    current = calculate_driver_incentive(driver, perf, None, divisor=1500)

    projections = project_scenarios(current, generate_default_scenarios(current.actual_km, current.target_km))

    assert all(p.projected_achievement == 0 for p in projections)
    assert all(p.projected_incentive == 0 for p in projections)
