"""Errors raised by the scheduling engine.

Every failure is a rejected request. Routes map each class to an HTTP
status; the attached context (doctor, date, time) travels in ``detail``.
"""

from datetime import date


class SchedulingError(Exception):
    """Base class for rejected scheduling requests."""

    def __init__(
        self,
        message: str,
        *,
        doctor_id: int | None = None,
        date: date | str | None = None,
        time: str | None = None,
        appointment_id: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.doctor_id = doctor_id
        self.date = date
        self.time = time
        self.appointment_id = appointment_id

    @property
    def detail(self) -> dict:
        detail: dict = {'error': type(self).__name__, 'message': self.message}
        if self.doctor_id is not None:
            detail['doctor_id'] = self.doctor_id
        if self.date is not None:
            detail['date'] = str(self.date)
        if self.time is not None:
            detail['time'] = self.time
        if self.appointment_id is not None:
            detail['appointment_id'] = self.appointment_id
        return detail


class InvalidRequest(SchedulingError):
    """Missing or malformed request fields."""


class InvalidDate(InvalidRequest):
    """A date that cannot be parsed as an ISO calendar date."""


class PastDate(SchedulingError):
    """Booking or rescheduling onto a day before today."""


class SlotConflict(SchedulingError):
    """The doctor already has an active appointment in this slot."""


class InvalidTransition(SchedulingError):
    """Status change not defined from the current state."""


class CancellationWindowExpired(SchedulingError):
    """Patient tried to cancel too close to the appointment date."""


class NotPermitted(SchedulingError):
    """The caller's role may not perform this change."""


class AppointmentNotFound(SchedulingError):
    pass


class DoctorNotFound(SchedulingError):
    pass
