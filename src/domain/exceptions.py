"""
Domain exceptions for the apuração engine.

Only store failures abort a run; everything else (rejected rules, failed
items) is recovered locally and reported in the result observations.
"""


class ApuracaoError(Exception):
    """Base class for apuração errors."""
    pass


class StoreUnavailableError(ApuracaoError):
    """Raised when a repository cannot be read or written."""

    def __init__(self, store: str, reason: str):
        self.store = store
        self.reason = reason
        super().__init__(f"{store} unavailable: {reason}")


class RuleStoreUnavailableError(StoreUnavailableError):
    """Raised when the rule set cannot be loaded."""

    def __init__(self, reason: str):
        super().__init__("Rule store", reason)


class CarryoverStoreUnavailableError(StoreUnavailableError):
    """Raised when period credits cannot be read or written."""

    def __init__(self, reason: str):
        super().__init__("Carryover store", reason)


class CarryoverConflictError(ApuracaoError):
    """Raised when another run wrote the same period credit first."""

    def __init__(self, taxpayer_id: str, period: str):
        self.taxpayer_id = taxpayer_id
        self.period = period
        super().__init__(
            f"Period credit for taxpayer {taxpayer_id}, period {period} "
            f"was modified concurrently"
        )


class InvalidPeriodError(ApuracaoError, ValueError):
    """Raised when a period key cannot be parsed."""

    def __init__(self, period: object):
        self.period = period
        super().__init__(f"Invalid period: {period!r} (expected YYYYMM)")


class ResultFinalizedError(ApuracaoError):
    """Raised when a finished result is mutated."""
    pass
