import json
import logging
from app import db
from app.models import IncentiveSetting, CustomFormula

DEFAULT_LOCAL_FUEL_TIERS = {
    'enabled': True,
    'tiers': [
        {'id': '1', 'min_efficiency': 1.95, 'max_efficiency': 2.05, 'bonus_amount': 20},
        {'id': '2', 'min_efficiency': 2.05, 'max_efficiency': 2.15, 'bonus_amount': 40},
        {'id': '3', 'min_efficiency': 2.15, 'max_efficiency': 2.25, 'bonus_amount': 60},
        {'id': '4', 'min_efficiency': 2.25, 'max_efficiency': 2.35, 'bonus_amount': 80},
    ],
}

DEFAULT_EXPORT_FUEL_TIERS = {
    'enabled': True,
    'tiers': [
        {'id': '1', 'min_efficiency': 1.95, 'max_efficiency': 2.05, 'bonus_amount': 25},
        {'id': '2', 'min_efficiency': 2.05, 'max_efficiency': 2.15, 'bonus_amount': 50},
        {'id': '3', 'min_efficiency': 2.15, 'max_efficiency': 2.25, 'bonus_amount': 75},
        {'id': '4', 'min_efficiency': 2.25, 'max_efficiency': 2.35, 'bonus_amount': 100},
    ],
}

DEFAULT_SETTINGS = {
    # key: [value, description, value_type]
    'incentive_divisor_local': ['1000', 'Divisor for Local drivers: rate per km = divisor / target km per truck', 'float'],
    'incentive_divisor_export': ['1500', 'Divisor for Export drivers: rate per km = divisor / target km per truck', 'float'],
    'fuel_efficiency_bonus_local': [json.dumps(DEFAULT_LOCAL_FUEL_TIERS), 'Fuel efficiency bonus tiers (km/L) for Local drivers (JSON)', 'json'],
    'fuel_efficiency_bonus_export': [json.dumps(DEFAULT_EXPORT_FUEL_TIERS), 'Fuel efficiency bonus tiers (km/L) for Export drivers (JSON)', 'json'],
}

DEFAULT_FORMULAS = [
    # (name, key, expression, description, priority)
    ('Safety Bonus', 'safety_bonus',
     'CASE WHEN safety_score >= 95 THEN 500 WHEN safety_score >= 90 THEN 300 ELSE 0 END',
     'Bonus for a high monthly safety score', 3),
]

def seed_data():
    """Populates the database with default settings and formulas."""
    # Seed Incentive Settings
    for key, data in DEFAULT_SETTINGS.items():
        setting = IncentiveSetting.query.filter_by(setting_key=key).first()
        if not setting: # Only add if it doesn't exist
            setting = IncentiveSetting(setting_key=key, setting_value=data[0], description=data[1],
                                       value_type=data[2], is_active=True)
            db.session.add(setting)
            logging.info(f'Seeding setting: {key}')

    # Seed Custom Formulas
    for name, key, expression, description, priority in DEFAULT_FORMULAS:
        if not CustomFormula.query.filter_by(formula_key=key).first():
            db.session.add(CustomFormula(formula_name=name, formula_key=key, formula_expression=expression,
                                         description=description, applies_to='all', is_active=True,
                                         priority=priority))
            logging.info(f'Seeding formula: {key}')

    db.session.commit()
    logging.info('Seeding complete.')
