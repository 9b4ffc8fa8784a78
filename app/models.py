# ==============================================================================
# app/models.py
# ------------------------------------------------------------------------------
# Defines the database schema using SQLAlchemy ORM models.
# ==============================================================================

from datetime import datetime
from app import db
import json

CALCULATION_STATUSES = ('draft', 'pending_approval', 'approved', 'paid')
AUDIT_ACTIONS = ('insert', 'update', 'delete', 'batch_calculate', 'approve', 'rollback')


def _iso(value):
    return value.isoformat() if value is not None else None


class Driver(db.Model):
    """
    A member of the fleet roster. Only the fields the incentive engine reads
    are modelled here; the roster itself is maintained elsewhere.
    """
    __tablename__ = 'drivers'
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.String(32), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    driver_type = db.Column(db.String(16), nullable=False, default='local')
    status = db.Column(db.String(16), nullable=False, default='active', index=True)

    # Total USD-equivalent salary as currently on file
    base_salary = db.Column(db.Float, default=0)
    usd_base_salary = db.Column(db.Float, default=0)
    zig_base_salary = db.Column(db.Float, default=0)

    __table_args__ = (
        db.CheckConstraint("driver_type IN ('local', 'export')", name='ck_driver_type'),
    )

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'

    def __repr__(self):
        return f'<Driver {self.employee_id}: {self.full_name} ({self.driver_type})>'


class DriverPerformance(db.Model):
    """Monthly kilometers and performance metrics for one driver."""
    __tablename__ = 'driver_performance'
    id = db.Column(db.Integer, primary_key=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('drivers.id'), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    actual_kilometers = db.Column(db.Float, nullable=False)
    fuel_efficiency = db.Column(db.Float, nullable=True)  # km/L
    on_time_delivery_rate = db.Column(db.Float, nullable=True)  # percent
    customer_rating = db.Column(db.Float, nullable=True)  # out of 5
    safety_score = db.Column(db.Float, nullable=True)  # out of 100

    driver = db.relationship('Driver', backref=db.backref('performance', lazy='dynamic'))

    __table_args__ = (db.UniqueConstraint('driver_id', 'year', 'month', name='_driver_perf_period_uc'),)

    def __repr__(self):
        return f'<DriverPerformance driver={self.driver_id} {self.year}-{self.month}: {self.actual_kilometers} km>'


class MonthlyBudget(db.Model):
    """
    Budgeted kilometers per driver type and month. Divided by the truck
    count it gives the per-truck target used to derive the rate per km.
    """
    __tablename__ = 'monthly_budgets'
    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    driver_type = db.Column(db.String(16), nullable=False)
    budgeted_kilometers = db.Column(db.Float, nullable=False, default=0)
    truck_count = db.Column(db.Integer, nullable=False, default=1)
    notes = db.Column(db.Text)

    __table_args__ = (
        db.UniqueConstraint('year', 'month', 'driver_type', name='_budget_period_type_uc'),
        db.CheckConstraint('truck_count >= 1', name='ck_budget_truck_count'),
    )

    def __repr__(self):
        return f'<MonthlyBudget {self.year}-{self.month} {self.driver_type}: {self.budgeted_kilometers} km>'


class IncentiveSetting(db.Model):
    """
    Key-value pairs for the incentive business rules (divisors and fuel
    efficiency tiers). Only rows flagged is_active are honoured.
    """
    __tablename__ = 'incentive_settings'
    id = db.Column(db.Integer, primary_key=True)
    setting_key = db.Column(db.String(128), unique=True, nullable=False, index=True)
    setting_value = db.Column(db.Text, nullable=False)
    description = db.Column(db.String(512))
    value_type = db.Column(db.String(32), default='string')  # e.g., 'float', 'int', 'string', 'json'
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self):
        return f'<IncentiveSetting {self.setting_key}: {self.setting_value}>'

    def get_value(self):
        """Casts the string value to its correct Python type."""
        if self.value_type == 'float':
            return float(self.setting_value)
        if self.value_type == 'int':
            return int(self.setting_value)
        if self.value_type == 'json':
            return json.loads(self.setting_value)
        return self.setting_value


class CustomFormula(db.Model):
    """
    Named bonus formula hooks. The expression text is stored but never
    evaluated; only the presence of an active formula is observed.
    """
    __tablename__ = 'custom_formulas'
    id = db.Column(db.Integer, primary_key=True)
    formula_name = db.Column(db.String(200), nullable=False)
    formula_key = db.Column(db.String(100), unique=True, nullable=False)
    formula_expression = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text)
    applies_to = db.Column(db.String(16), default='all')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    priority = db.Column(db.Integer, nullable=False, default=0)
    variables = db.Column(db.JSON)

    def __repr__(self):
        return f'<CustomFormula {self.formula_key} (active={self.is_active})>'


class IncentiveCalculation(db.Model):
    """
    The persisted incentive result for one driver and period, together with
    its workflow status. The version column is the optimistic concurrency
    token: a flush against a stale version raises StaleDataError.
    """
    __tablename__ = 'incentive_calculations'
    id = db.Column(db.Integer, primary_key=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('drivers.id'), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)

    base_salary = db.Column(db.Float, default=0)
    km_incentive = db.Column(db.Float, default=0)
    performance_bonus = db.Column(db.Float, default=0)
    safety_bonus = db.Column(db.Float, default=0)
    deductions = db.Column(db.Float, default=0)
    deduction_reason = db.Column(db.Text)
    total_incentive = db.Column(db.Float, default=0)
    total_earnings = db.Column(db.Float, default=0)
    calculation_details = db.Column(db.JSON)

    status = db.Column(db.String(32), nullable=False, default='draft', index=True)
    approved_by = db.Column(db.String(200))
    approved_date = db.Column(db.DateTime)
    paid_date = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    version = db.Column(db.Integer, nullable=False)

    driver = db.relationship('Driver', backref=db.backref('incentive_calculations', lazy='dynamic'))
    snapshots = db.relationship('CalculationSnapshot', backref='calculation',
                                cascade='all, delete-orphan')

    __table_args__ = (
        db.UniqueConstraint('driver_id', 'year', 'month', name='_calc_driver_period_uc'),
        db.CheckConstraint("status IN ('draft', 'pending_approval', 'approved', 'paid')", name='ck_calc_status'),
    )
    __mapper_args__ = {'version_id_col': version}

    def to_dict(self):
        """Row as a JSON-safe dictionary, used for snapshots and audit values."""
        return {
            'id': self.id,
            'driver_id': self.driver_id,
            'year': self.year,
            'month': self.month,
            'base_salary': self.base_salary,
            'km_incentive': self.km_incentive,
            'performance_bonus': self.performance_bonus,
            'safety_bonus': self.safety_bonus,
            'deductions': self.deductions,
            'deduction_reason': self.deduction_reason,
            'total_incentive': self.total_incentive,
            'total_earnings': self.total_earnings,
            'calculation_details': self.calculation_details,
            'status': self.status,
            'approved_by': self.approved_by,
            'approved_date': _iso(self.approved_date),
            'paid_date': _iso(self.paid_date),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<IncentiveCalculation {self.id}: driver={self.driver_id} {self.year}-{self.month} [{self.status}]>'


class CalculationSnapshot(db.Model):
    """Point-in-time copy of an IncentiveCalculation taken before a status change."""
    __tablename__ = 'calculation_snapshots'
    id = db.Column(db.Integer, primary_key=True)
    calculation_id = db.Column(db.Integer, db.ForeignKey('incentive_calculations.id', ondelete='CASCADE'),
                               nullable=False, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('drivers.id'), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    snapshot_data = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime, index=True, default=datetime.utcnow)
    created_by = db.Column(db.String(200))
    reason = db.Column(db.Text)

    def __repr__(self):
        return f'<CalculationSnapshot {self.id}: calc={self.calculation_id} "{self.reason}">'


class AuditLog(db.Model):
    """Append-only history of every mutating action against incentive calculations."""
    __tablename__ = 'audit_log'
    id = db.Column(db.Integer, primary_key=True)
    table_name = db.Column(db.String(100), nullable=False, index=True)
    record_id = db.Column(db.String(64), nullable=False, index=True)
    action = db.Column(db.String(32), nullable=False)
    old_values = db.Column(db.JSON)
    new_values = db.Column(db.JSON)
    changed_by = db.Column(db.String(200))
    changed_at = db.Column(db.DateTime, index=True, default=datetime.utcnow)
    # 'metadata' is reserved on declarative classes, hence the attribute name
    context = db.Column('metadata', db.JSON)

    __table_args__ = (
        db.CheckConstraint(
            "action IN ('insert', 'update', 'delete', 'batch_calculate', 'approve', 'rollback')",
            name='ck_audit_action'),
    )

    def __repr__(self):
        return f'<AuditLog {self.id}: {self.action} {self.table_name}/{self.record_id}>'


class DriverSalaryHistory(db.Model):
    """Month-by-month USD and ZIG salary components for a driver."""
    __tablename__ = 'driver_salary_history'
    id = db.Column(db.Integer, primary_key=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('drivers.id'), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    usd_base_salary = db.Column(db.Float, nullable=False, default=0)
    zig_base_salary = db.Column(db.Float, nullable=False, default=0)
    effective_date = db.Column(db.Date)
    notes = db.Column(db.Text)

    __table_args__ = (db.UniqueConstraint('driver_id', 'year', 'month', name='_salary_driver_period_uc'),)

    def __repr__(self):
        return f'<DriverSalaryHistory driver={self.driver_id} {self.year}-{self.month}>'


class ConversionRate(db.Model):
    """Monthly ZIG to USD rate, expressed as ZIG per 1 USD."""
    __tablename__ = 'zig_usd_conversion_rates'
    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    rate = db.Column(db.Float, nullable=False)
    effective_date = db.Column(db.Date)
    notes = db.Column(db.Text)

    __table_args__ = (
        db.UniqueConstraint('year', 'month', name='_rate_year_month_uc'),
        db.CheckConstraint('rate > 0', name='ck_rate_positive'),
    )

    def __repr__(self):
        return f'<ConversionRate {self.year}-{self.month}: {self.rate}>'


class BatchCalculationJob(db.Model):
    """Bookkeeping row for each persisted batch calculation run."""
    __tablename__ = 'batch_calculation_jobs'
    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    total_drivers = db.Column(db.Integer, nullable=False, default=0)
    processed_count = db.Column(db.Integer, nullable=False, default=0)
    success_count = db.Column(db.Integer, nullable=False, default=0)
    failed_count = db.Column(db.Integer, nullable=False, default=0)
    total_incentives = db.Column(db.Float, nullable=False, default=0)
    created_by = db.Column(db.String(200))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime)
    error_log = db.Column(db.JSON)

    __table_args__ = (
        db.CheckConstraint("status IN ('pending', 'processing', 'completed', 'failed')", name='ck_batch_job_status'),
    )

    def __repr__(self):
        return f'<BatchCalculationJob {self.id}: {self.year}-{self.month} [{self.status}]>'
