"""Errors raised by the appointment lifecycle services.

Validation, authorization and state failures are reported to the immediate
caller and never leave a partial write behind. Store failures are not wrapped
here; they surface as ``sqlalchemy.exc.SQLAlchemyError``.
"""


class AppointmentServiceError(Exception):
    """Base class for appointment lifecycle errors."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class AppointmentValidationError(AppointmentServiceError):
    """Malformed input rejected before touching the store."""


class InvalidStatusError(AppointmentValidationError):
    pass


class InvalidScheduledTimeError(AppointmentValidationError):
    pass


class DoctorNotFoundError(AppointmentValidationError):
    pass


class PatientNotFoundError(AppointmentValidationError):
    pass


class AppointmentNotFoundError(AppointmentServiceError):
    pass


class TransitionForbiddenError(AppointmentServiceError):
    """The requester may not act on this appointment."""


class IllegalTransitionError(AppointmentServiceError):
    """The state machine has no such edge from the appointment's current status."""


class SweepInProgressError(AppointmentServiceError):
    """Another expiration sweep holds the single-writer lock."""
