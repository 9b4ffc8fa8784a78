# ==============================================================================
# app/calculator/bonus.py
# ------------------------------------------------------------------------------
# Maps a driver's monthly performance metrics to bonus line items.
# Pure functions: no database access, no clock.
# ==============================================================================

import logging
from dataclasses import dataclass, field

# --- Threshold Tier Tables ---
# (minimum value, bonus amount), checked from the highest threshold down.
SAFETY_TIERS = ((95, 500), (90, 300))
ON_TIME_TIERS = ((98, 300), (95, 200))
CUSTOMER_RATING_TIERS = ((4.8, 200), (4.5, 100))


@dataclass(frozen=True)
class BonusRule:
    """A threshold-tier bonus rule for one performance metric."""
    key: str
    tiers: tuple

    def evaluate(self, value):
        for threshold, amount in self.tiers:
            if value >= threshold:
                return amount
        return 0


SAFETY_RULE = BonusRule('safety_bonus', SAFETY_TIERS)
ON_TIME_RULE = BonusRule('on_time_bonus', ON_TIME_TIERS)
CUSTOMER_RULE = BonusRule('customer_bonus', CUSTOMER_RATING_TIERS)


class FormulaEvaluator:
    """
    Extension point for custom bonus formulas.

    Formula expressions are stored but have no interpreter yet, so the
    default evaluator applies the rule's own tiers. A subclass that actually
    understands ``formula_expression`` can be passed to ``evaluate_bonuses``.
    """

    def evaluate(self, formula, rule, value):
        return rule.evaluate(value)


DEFAULT_FORMULA_EVALUATOR = FormulaEvaluator()


@dataclass
class FuelEfficiencyConfig:
    """Fuel efficiency bonus tiers (km/L) for one driver type."""
    enabled: bool = False
    tiers: list = field(default_factory=list)

    @classmethod
    def from_setting_value(cls, value):
        """Builds a config from a stored setting value; anything unusable means disabled."""
        if not isinstance(value, dict):
            return cls()
        return cls(enabled=bool(value.get('enabled', False)), tiers=list(value.get('tiers') or []))

    def find_tier(self, efficiency):
        """Returns the tier whose half-open range [min, max) contains the value, or None."""
        for tier in self.tiers:
            try:
                if tier['min_efficiency'] <= efficiency < tier['max_efficiency']:
                    return tier
            except (KeyError, TypeError):
                logging.warning(f"Ignoring malformed fuel efficiency tier: {tier!r}")
        return None


def _format_efficiency(value):
    # 2.0 -> '2', 2.05 -> '2.05', 1234567 -> '1234567'
    text = str(float(value))
    return text[:-2] if text.endswith('.0') else text


def find_active_formula(formulas, formula_key):
    """Returns the active formula for a key, lowest priority number first."""
    candidates = [f for f in formulas or [] if f.formula_key == formula_key and f.is_active]
    if not candidates:
        return None
    return sorted(candidates, key=lambda f: f.priority or 0)[0]


def evaluate_bonuses(performance, formulas=None, fuel_config=None, evaluator=DEFAULT_FORMULA_EVALUATOR):
    """
    Evaluates every bonus the performance record qualifies for.

    A metric that is missing on the record contributes no keys at all to the
    breakdown. The fuel bonus is only evaluated when the fuel configuration
    is enabled and has tiers.

    Args:
        performance: A DriverPerformance-like object.
        formulas (list): Custom formulas; an active ``safety_bonus`` formula
            routes the safety bonus through ``evaluator``.
        fuel_config (FuelEfficiencyConfig): Fuel tiers for the driver's type.
        evaluator (FormulaEvaluator): Strategy used for active formulas.

    Returns:
        dict: The bonus breakdown, keyed by the calculation_details names.
    """
    breakdown = {}

    if performance.safety_score is not None:
        breakdown['safety_score'] = performance.safety_score
        formula = find_active_formula(formulas, SAFETY_RULE.key)
        if formula is not None:
            safety_bonus = evaluator.evaluate(formula, SAFETY_RULE, performance.safety_score)
            breakdown['safety_bonus_rate'] = safety_bonus
        else:
            safety_bonus = SAFETY_RULE.evaluate(performance.safety_score)
        breakdown['safety_bonus'] = safety_bonus

    if performance.on_time_delivery_rate is not None:
        breakdown['on_time_rate'] = performance.on_time_delivery_rate
        breakdown['on_time_bonus'] = ON_TIME_RULE.evaluate(performance.on_time_delivery_rate)

    if performance.customer_rating is not None:
        breakdown['customer_rating'] = performance.customer_rating
        breakdown['customer_bonus'] = CUSTOMER_RULE.evaluate(performance.customer_rating)

    if performance.fuel_efficiency is not None:
        breakdown['fuel_efficiency'] = performance.fuel_efficiency
        if fuel_config is not None and fuel_config.enabled and fuel_config.tiers:
            tier = fuel_config.find_tier(performance.fuel_efficiency)
            if tier is not None:
                breakdown['fuel_efficiency_bonus'] = tier.get('bonus_amount') or 0
                breakdown['fuel_efficiency_tier'] = (
                    f"{_format_efficiency(tier['min_efficiency'])}-"
                    f"{_format_efficiency(tier['max_efficiency'])} km/L"
                )
            else:
                breakdown['fuel_efficiency_bonus'] = 0

    return breakdown
