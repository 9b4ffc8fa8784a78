# tests/conftest.py

import json
import pytest

from config import Config


class InMemoryConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    DEFAULT_ACTOR = 'tester'
    APPROVER_NAME = 'admin'


@pytest.fixture
def app_with_db():
    """
    Creates a new app instance for a test, sets up an in-memory database,
    and yields the app within an application context.
    """
    from app import create_app, db

    app = create_app(InMemoryConfig)

    with app.app_context():
        db.create_all()
        yield app  # The tests will run here
        db.session.remove()
        db.drop_all()


LOCAL_FUEL_TIERS = {
    'enabled': True,
    'tiers': [
        {'id': '1', 'min_efficiency': 1.95, 'max_efficiency': 2.05, 'bonus_amount': 20},
        {'id': '2', 'min_efficiency': 2.05, 'max_efficiency': 2.15, 'bonus_amount': 40},
    ],
}


@pytest.fixture
def fleet(app_with_db):
    """
    Seeds a small fleet for January 2025: two active local drivers with
    performance, one active export driver without performance and one
    inactive driver.
    """
    from app import db
    from app.models import Driver, DriverPerformance, IncentiveSetting, MonthlyBudget

    alice = Driver(employee_id='D001', first_name='Alice', last_name='Moyo', driver_type='local',
                   status='active', base_salary=800, usd_base_salary=800, zig_base_salary=0)
    brian = Driver(employee_id='D002', first_name='Brian', last_name='Ncube', driver_type='local',
                   status='active', base_salary=700, usd_base_salary=700, zig_base_salary=0)
    chipo = Driver(employee_id='D003', first_name='Chipo', last_name='Dube', driver_type='export',
                   status='active', base_salary=900, usd_base_salary=900, zig_base_salary=0)
    dan = Driver(employee_id='D004', first_name='Dan', last_name='Sibanda', driver_type='local',
                 status='inactive', base_salary=650, usd_base_salary=650, zig_base_salary=0)
    db.session.add_all([alice, brian, chipo, dan])
    db.session.flush()

    db.session.add_all([
        DriverPerformance(driver_id=alice.id, year=2025, month=1, actual_kilometers=3300,
                          safety_score=96, on_time_delivery_rate=99, customer_rating=4.9),
        DriverPerformance(driver_id=brian.id, year=2025, month=1, actual_kilometers=2400,
                          fuel_efficiency=2.05),
        DriverPerformance(driver_id=dan.id, year=2025, month=1, actual_kilometers=5000),
        MonthlyBudget(year=2025, month=1, driver_type='local', budgeted_kilometers=3000, truck_count=1),
        IncentiveSetting(setting_key='incentive_divisor_local', setting_value='1000', value_type='float',
                         is_active=True),
        IncentiveSetting(setting_key='incentive_divisor_export', setting_value='1500', value_type='float',
                         is_active=True),
        IncentiveSetting(setting_key='fuel_efficiency_bonus_local', setting_value=json.dumps(LOCAL_FUEL_TIERS),
                         value_type='json', is_active=True),
    ])
    db.session.commit()
    return {'alice': alice, 'brian': brian, 'chipo': chipo, 'dan': dan}


@pytest.fixture
def calculations(fleet):
    """Runs the January 2025 batch and returns the stored calculation ids by driver."""
    from app.calculator.runner import run_batch_calculation
    from app.models import IncentiveCalculation

    run_batch_calculation(2025, 1)
    return {
        name: IncentiveCalculation.query.filter_by(driver_id=driver.id, year=2025, month=1).one().id
        for name, driver in fleet.items()
        if name in ('alice', 'brian')
    }
