# ==============================================================================
# app/exceptions.py
# ------------------------------------------------------------------------------
# Typed exceptions raised by the calculation and workflow layers.
# Each carries a machine-readable code so callers can branch on type, not text.
# ==============================================================================


class IncentiveError(Exception):
    """Base class for every error raised by the incentive engine."""
    code = 'INCENTIVE_ERROR'

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class MissingInputError(IncentiveError):
    """A driver has no performance record for the requested period."""
    code = 'MISSING_INPUT'

    def __init__(self, driver_id, year, month, message='No performance record for this period'):
        super().__init__(message)
        self.driver_id = driver_id
        self.year = year
        self.month = month


class ComputationError(IncentiveError):
    """Unexpected failure while computing one driver's incentive."""
    code = 'COMPUTATION_ERROR'

    def __init__(self, driver_id, cause):
        super().__init__(str(cause) or cause.__class__.__name__)
        self.driver_id = driver_id
        self.cause = cause


class CalculationNotFoundError(IncentiveError):
    code = 'CALCULATION_NOT_FOUND'

    def __init__(self, calculation_id):
        super().__init__(f'Incentive calculation {calculation_id} not found')
        self.calculation_id = calculation_id


class NoSnapshotError(IncentiveError):
    """Rollback was requested but the calculation has never been snapshotted."""
    code = 'NO_SNAPSHOT'

    def __init__(self, calculation_id):
        super().__init__('No snapshot available for rollback')
        self.calculation_id = calculation_id


class IllegalTransitionError(IncentiveError):
    """The requested status change is not in the workflow transition table."""
    code = 'ILLEGAL_TRANSITION'

    def __init__(self, from_status, to_status):
        super().__init__(f"Transition from '{from_status}' to '{to_status}' is not allowed")
        self.from_status = from_status
        self.to_status = to_status


class ConcurrentUpdateError(IncentiveError):
    """Another writer changed the calculation between our read and our write."""
    code = 'CONCURRENT_UPDATE'

    def __init__(self, calculation_id):
        super().__init__(f'Incentive calculation {calculation_id} was modified concurrently; reload and retry')
        self.calculation_id = calculation_id
