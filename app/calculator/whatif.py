# ==============================================================================
# app/calculator/whatif.py
# ------------------------------------------------------------------------------
# Projects a driver's incentive under "what if they drove more" scenarios.
# ==============================================================================

import math
from dataclasses import dataclass


@dataclass
class WhatIfScenario:
    scenario_name: str
    additional_km: float
    projected_km: float
    projected_incentive: float
    projected_earnings: float
    projected_achievement: float
    difference: dict


def _round_half_up(value):
    return math.floor(value + 0.5)


def generate_default_scenarios(current_km, target_km):
    """
    Returns the standard scenario list as (name, additional_km) pairs.
    The target-based scenarios are only offered while the driver is below them.
    """
    scenarios = []
    if current_km < target_km:
        scenarios.append(('Reach 100% Target', target_km - current_km))
    scenarios.append(('+10% More KM', _round_half_up(current_km * 0.1)))
    scenarios.append(('+500 KM', 500))
    scenarios.append(('+1,000 KM', 1000))
    if current_km < target_km * 1.1:
        scenarios.append(('Reach 110% Target', _round_half_up(target_km * 1.1 - current_km)))
    return scenarios


def project_scenarios(current, scenarios):
    """
    Re-derives incentive and earnings for each scenario from a computed result.

    The fuel efficiency bonus does not depend on kilometers and is left out
    of the projected incentive.

    Args:
        current (CalculationResult): The driver's current calculation.
        scenarios (list): (name, additional_km) pairs.

    Returns:
        list[WhatIfScenario]
    """
    projections = []
    for name, additional_km in scenarios:
        projected_km = current.actual_km + additional_km
        projected_incentive = projected_km * current.rate_per_km + current.performance_bonus + current.safety_bonus
        projected_earnings = current.base_salary + projected_incentive
        projected_achievement = projected_km / current.target_km * 100 if current.target_km > 0 else 0

        projections.append(WhatIfScenario(
            scenario_name=name,
            additional_km=additional_km,
            projected_km=projected_km,
            projected_incentive=projected_incentive,
            projected_earnings=projected_earnings,
            projected_achievement=projected_achievement,
            difference={
                'km': additional_km,
                'incentive': projected_incentive - current.total_incentive,
                'earnings': projected_earnings - current.total_earnings,
                'achievement': projected_achievement - current.achievement,
            },
        ))
    return projections
