# ==============================================================================
# app/calculator/currency.py
# ------------------------------------------------------------------------------
# Resolves a driver's USD-equivalent base salary for a historical period from
# the salary history and the monthly ZIG to USD conversion rate.
# ==============================================================================

from dataclasses import dataclass


@dataclass
class SalaryResolution:
    usd_base_salary: float
    zig_base_salary: float
    conversion_rate: float
    # Period of the history row used; None when the driver's own fields were used
    source_year: int = None
    source_month: int = None

    @property
    def total_usd(self):
        return self.usd_base_salary + self.zig_base_salary / self.conversion_rate


def resolve_salary_components(driver, history, year, month):
    """
    Picks the salary components in force for a period.

    An exact history match wins, then the most recent record strictly before
    the period, then the driver's current salary fields.

    Returns:
        tuple: (usd_base_salary, zig_base_salary, source_year, source_month)
    """
    records = [h for h in history if h.driver_id == driver.id]

    for record in records:
        if record.year == year and record.month == month:
            return record.usd_base_salary or 0, record.zig_base_salary or 0, record.year, record.month

    earlier = [h for h in records if (h.year, h.month) < (year, month)]
    if earlier:
        record = max(earlier, key=lambda h: (h.year, h.month))
        return record.usd_base_salary or 0, record.zig_base_salary or 0, record.year, record.month

    usd = driver.usd_base_salary or 0
    zig = driver.zig_base_salary or 0
    if not usd and not zig:
        # Drivers that predate the split only carry the combined figure
        usd = driver.base_salary or 0
    return usd, zig, None, None


def resolve_conversion_rate(rates, year, month):
    """ZIG per USD for the period; 1 (no conversion) when none is on file."""
    for rate in rates:
        if rate.year == year and rate.month == month and rate.rate:
            return rate.rate
    return 1


def resolve_period_salary(driver, history, rates, year, month):
    usd, zig, source_year, source_month = resolve_salary_components(driver, history, year, month)
    return SalaryResolution(
        usd_base_salary=usd,
        zig_base_salary=zig,
        conversion_rate=resolve_conversion_rate(rates, year, month),
        source_year=source_year,
        source_month=source_month,
    )


def period_base_salary_usd(driver, history, rates, year, month):
    """Total USD-equivalent base salary: usd + zig / rate."""
    return resolve_period_salary(driver, history, rates, year, month).total_usd
