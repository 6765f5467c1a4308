"""Exception types for the cost observability engine."""


class CostObservabilityError(Exception):
    """Base class for engine errors."""


class InvalidInputError(CostObservabilityError, ValueError):
    """Raised when an operation receives input it cannot work with."""


class LearningStoreUnavailable(CostObservabilityError):
    """Raised by a learning store backend when a lookup cannot be served."""
