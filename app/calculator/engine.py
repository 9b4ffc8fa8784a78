# ==============================================================================
# app/calculator/engine.py
# ------------------------------------------------------------------------------
# Kilometer-based incentive calculation for single drivers and whole periods.
# Everything here is a pure function of its inputs; persistence lives in
# app/calculator/runner.py.
# ==============================================================================

import logging
from dataclasses import dataclass, field, asdict

from app.calculator.bonus import FuelEfficiencyConfig, evaluate_bonuses
from app.exceptions import ComputationError, MissingInputError

DIVISOR_SETTING_KEYS = {
    'local': 'incentive_divisor_local',
    'export': 'incentive_divisor_export',
}
FUEL_SETTING_KEYS = {
    'local': 'fuel_efficiency_bonus_local',
    'export': 'fuel_efficiency_bonus_export',
}
DEFAULT_DIVISOR = 1

# --- Configuration ---

def _setting_value(setting):
    try:
        return setting.get_value()
    except (ValueError, TypeError):
        logging.warning(f"Ignoring setting '{setting.setting_key}': cannot read "
                        f"{setting.setting_value!r} as {setting.value_type}")
        return None


def _divisor(setting_key, value):
    if value is None:
        return DEFAULT_DIVISOR
    try:
        return float(value)
    except (ValueError, TypeError):
        logging.warning(f"Setting '{setting_key}' is not a number ({value!r}); using divisor {DEFAULT_DIVISOR}")
        return DEFAULT_DIVISOR


@dataclass
class DriverTypeConfig:
    divisor: float = DEFAULT_DIVISOR
    fuel_config: FuelEfficiencyConfig = field(default_factory=FuelEfficiencyConfig)


class CalculationConfig:
    """
    The incentive rules for one batch run, resolved once from the settings
    table and keyed by driver type.
    """

    def __init__(self, local=None, export=None):
        self.by_type = {
            'local': local or DriverTypeConfig(),
            'export': export or DriverTypeConfig(),
        }

    @classmethod
    def from_settings(cls, settings):
        """
        Builds the configuration from IncentiveSetting rows. Inactive,
        missing or unreadable settings fall back to a divisor of 1 and
        disabled fuel tiers.
        """
        active = {s.setting_key: _setting_value(s) for s in settings if s.is_active}
        configs = {}
        for driver_type in ('local', 'export'):
            divisor = _divisor(DIVISOR_SETTING_KEYS[driver_type], active.get(DIVISOR_SETTING_KEYS[driver_type]))
            fuel_config = FuelEfficiencyConfig.from_setting_value(active.get(FUEL_SETTING_KEYS[driver_type]))
            configs[driver_type] = DriverTypeConfig(divisor=divisor, fuel_config=fuel_config)
            logging.debug(f"Config for {driver_type}: divisor={divisor}, fuel tiers enabled={fuel_config.enabled} "
                          f"({len(fuel_config.tiers)} tiers)")
        return cls(**configs)

    def for_driver_type(self, driver_type):
        return self.by_type['export'] if driver_type == 'export' else self.by_type['local']


# --- Results ---

@dataclass
class CalculationResult:
    driver_id: object
    driver_name: str
    year: int
    month: int
    base_salary: float
    actual_km: float
    target_km: float
    target_km_per_truck: float
    rate_per_km: float
    km_incentive: float
    performance_bonus: float
    safety_bonus: float
    fuel_bonus: float
    deductions: float
    deduction_reason: str
    total_incentive: float
    total_earnings: float
    achievement: float
    calculation_details: dict

    def to_dict(self):
        return asdict(self)


@dataclass
class BatchResult:
    success: list = field(default_factory=list)
    failed: list = field(default_factory=list)
    summary: dict = field(default_factory=dict)


def driver_display_name(driver):
    return f'{driver.first_name} {driver.last_name}'


# --- Single Driver ---

def calculate_driver_incentive(driver, performance, budget, divisor, formulas=None, fuel_config=None,
                               base_salary=None):
    """
    Computes the fully itemized incentive for one driver and period.

    Args:
        driver: A Driver-like object.
        performance: The driver's DriverPerformance for the period.
        budget: The MonthlyBudget for the driver's type and period, or None.
        divisor (float): The divisor for the driver's type.
        formulas (list): Active custom formulas.
        fuel_config (FuelEfficiencyConfig): Fuel tiers for the driver's type.
        base_salary (float): Period base salary; defaults to driver.base_salary.

    Returns:
        CalculationResult: Every intermediate value is kept in calculation_details.
    """
    budget_km = (budget.budgeted_kilometers if budget is not None else 0) or 0
    truck_count = (budget.truck_count if budget is not None else 1) or 1
    target_km_per_truck = budget_km / truck_count if truck_count > 0 else 0
    actual_km = performance.actual_kilometers

    rate_per_km = divisor / target_km_per_truck if target_km_per_truck > 0 and divisor > 0 else 0
    km_incentive = actual_km * rate_per_km
    achievement = actual_km / budget_km * 100 if budget_km > 0 else 0

    bonus_breakdown = evaluate_bonuses(performance, formulas, fuel_config)
    performance_bonus = bonus_breakdown.get('on_time_bonus', 0) + bonus_breakdown.get('customer_bonus', 0)
    safety_bonus = bonus_breakdown.get('safety_bonus', 0)
    fuel_bonus = bonus_breakdown.get('fuel_efficiency_bonus', 0)

    total_incentive = km_incentive + performance_bonus + safety_bonus + fuel_bonus
    salary = driver.base_salary if base_salary is None else base_salary
    total_earnings = (salary or 0) + total_incentive

    return CalculationResult(
        driver_id=driver.id,
        driver_name=driver_display_name(driver),
        year=performance.year,
        month=performance.month,
        base_salary=salary or 0,
        actual_km=actual_km,
        target_km=budget_km,
        target_km_per_truck=target_km_per_truck,
        rate_per_km=rate_per_km,
        km_incentive=km_incentive,
        performance_bonus=performance_bonus,
        safety_bonus=safety_bonus,
        fuel_bonus=fuel_bonus,
        deductions=0,
        deduction_reason=None,
        total_incentive=total_incentive,
        total_earnings=total_earnings,
        achievement=achievement,
        calculation_details={
            'budget_km': budget_km,
            'truck_count': truck_count,
            'target_km_per_truck': target_km_per_truck,
            'divisor': divisor,
            'rate_per_km': rate_per_km,
            'actual_km': actual_km,
            'bonus_breakdown': bonus_breakdown,
        },
    )


# --- Batch ---

def _failure(driver, error):
    return {'driver_id': driver.id, 'driver_name': driver_display_name(driver), 'reason': error.message}


def batch_calculate_incentives(drivers, performances, budgets, config, formulas, year, month,
                               salary_resolver=None):
    """
    Runs the single-driver calculation for every active driver in a period.

    A driver without a performance record, or whose calculation raises, is
    reported in ``failed`` and the batch carries on. A missing budget is not
    a failure; the driver simply earns no kilometer incentive.

    Args:
        drivers (list): All drivers; only status 'active' are processed.
        performances (list): Performance records (any period).
        budgets (list): Monthly budgets (any period).
        config (CalculationConfig): Divisors and fuel tiers per driver type.
        formulas (list): Custom formulas.
        year (int), month (int): The batch period.
        salary_resolver (callable): ``f(driver) -> float`` giving the period
            base salary; defaults to the driver's current base_salary.

    Returns:
        BatchResult
    """
    logging.info(f"--- Starting batch incentive calculation for {year}-{month:02d} ---")
    result = BatchResult()

    performance_lookup = {(p.driver_id, p.year, p.month): p for p in performances}
    budget_lookup = {(b.year, b.month, b.driver_type): b for b in budgets}
    active_drivers = [d for d in drivers if d.status == 'active']

    for driver in active_drivers:
        performance = performance_lookup.get((driver.id, year, month))
        if performance is None:
            error = MissingInputError(driver.id, year, month)
            logging.warning(f"  SKIPPING {driver_display_name(driver)}: {error.message}")
            result.failed.append(_failure(driver, error))
            continue

        try:
            budget = budget_lookup.get((year, month, driver.driver_type))
            type_config = config.for_driver_type(driver.driver_type)
            base_salary = salary_resolver(driver) if salary_resolver is not None else None
            calculation = calculate_driver_incentive(
                driver, performance, budget, type_config.divisor, formulas, type_config.fuel_config,
                base_salary=base_salary,
            )
        except Exception as e:
            error = ComputationError(driver.id, e)
            logging.error(f"  FAILED {driver_display_name(driver)}: {error.message}", exc_info=True)
            result.failed.append(_failure(driver, error))
            continue

        logging.debug(f"  {calculation.driver_name}: km={calculation.actual_km}, rate={calculation.rate_per_km:.5f}, "
                      f"incentive={calculation.total_incentive:,.2f}")
        result.success.append(calculation)

    result.summary = {
        'total_processed': len(active_drivers),
        'success_count': len(result.success),
        'failed_count': len(result.failed),
        'total_incentives': sum(r.total_incentive for r in result.success),
        'total_earnings': sum(r.total_earnings for r in result.success),
    }
    logging.info(f"--- Batch finished: {result.summary['success_count']} calculated, "
                 f"{result.summary['failed_count']} failed, "
                 f"total incentives {result.summary['total_incentives']:,.2f} ---")
    return result


def result_to_calculation_fields(result, status='draft'):
    """Converts a CalculationResult into IncentiveCalculation column values."""
    return {
        'driver_id': result.driver_id,
        'year': result.year,
        'month': result.month,
        'base_salary': result.base_salary,
        'km_incentive': result.km_incentive,
        'performance_bonus': result.performance_bonus,
        'safety_bonus': result.safety_bonus,
        'deductions': result.deductions,
        'deduction_reason': result.deduction_reason,
        'total_incentive': result.total_incentive,
        'total_earnings': result.total_earnings,
        'calculation_details': result.calculation_details,
        'status': status,
        'approved_by': None,
        'approved_date': None,
        'paid_date': None,
    }
