"""Exceptions raised by the scheduling services and their stores."""


class SchedulingError(Exception):
    """Base exception for scheduling errors."""
    pass


class AppointmentValidationError(SchedulingError):
    """Raised for malformed input, before any store is called."""
    pass


class AppointmentNotFoundError(SchedulingError):
    """Raised when an appointment id does not resolve."""
    pass


class PersistenceFailure(SchedulingError):
    """Raised when a store call fails or reports non-success."""
    pass


class RateSettingsError(SchedulingError):
    """Raised when the pricing settings are missing or not numeric."""
    pass
