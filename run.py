# ==============================================================================
# run.py
# ------------------------------------------------------------------------------
# The main entry point for the Flask application and its CLI commands.
# ==============================================================================

from app import create_app, db
from app.models import (Driver, DriverPerformance, MonthlyBudget, IncentiveSetting, CustomFormula,
                        IncentiveCalculation, CalculationSnapshot, AuditLog)

# Create the Flask application instance using the factory function
app = create_app()

@app.shell_context_processor
def make_shell_context():
    """Provides a shell context for the `flask shell` command."""
    return {
        'db': db,
        'Driver': Driver,
        'DriverPerformance': DriverPerformance,
        'MonthlyBudget': MonthlyBudget,
        'IncentiveSetting': IncentiveSetting,
        'CustomFormula': CustomFormula,
        'IncentiveCalculation': IncentiveCalculation,
        'CalculationSnapshot': CalculationSnapshot,
        'AuditLog': AuditLog
    }

if __name__ == '__main__':
    # Equivalent to `flask --app run <command>`
    from flask.cli import FlaskGroup
    FlaskGroup(create_app=lambda: app)()
