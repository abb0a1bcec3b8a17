import logging
from datetime import date

from carebook.core import config
from carebook.models.appointment import (
    APPOINTMENT_STATUSES,
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    PENDING,
    Appointment,
)
from carebook.scheduling.errors import (
    CancellationWindowExpired,
    InvalidRequest,
    InvalidTransition,
    NotPermitted,
)

logger = logging.getLogger(__name__)

PATIENT = 'patient'
DOCTOR = 'doctor'
ADMIN = 'admin'

ROLES = (PATIENT, DOCTOR, ADMIN)
STAFF_ROLES = frozenset({DOCTOR, ADMIN})

# (from, to) -> roles allowed to make the move. Nothing leads back to pending
# and nothing leaves completed or cancelled.
TRANSITIONS = {
    (PENDING, CONFIRMED): STAFF_ROLES,
    (PENDING, COMPLETED): STAFF_ROLES,
    (CONFIRMED, COMPLETED): STAFF_ROLES,
    (PENDING, CANCELLED): frozenset({PATIENT, DOCTOR, ADMIN}),
    (CONFIRMED, CANCELLED): frozenset({PATIENT, DOCTOR, ADMIN}),
}

TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED})


def allowed_targets(status: str, role: str | None = None) -> list[str]:
    return [
        target
        for (source, target), roles in TRANSITIONS.items()
        if source == status and (role is None or role in roles)
    ]


def days_until(appointment_date: date, today: date) -> int:
    return (appointment_date - today).days


def can_patient_cancel(appointment: Appointment, today: date) -> bool:
    return (
        appointment.status in (PENDING, CONFIRMED)
        and days_until(appointment.date, today) >= config.PATIENT_CANCELLATION_MIN_DAYS
    )


def check_transition(current: str, target: str, role: str) -> None:
    if target not in APPOINTMENT_STATUSES:
        raise InvalidRequest(f'Unknown status: {target!r}.')
    if role not in ROLES:
        raise NotPermitted(f'Unknown role: {role!r}.')

    if current in TERMINAL_STATUSES:
        raise InvalidTransition(f'Appointment is already {current}.')

    roles = TRANSITIONS.get((current, target))
    if roles is None:
        raise InvalidTransition(f'Cannot move an appointment from {current} to {target}.')
    if role not in roles:
        raise NotPermitted(f'A {role} cannot move an appointment from {current} to {target}.')


def cancellation_note(role: str, reason: str | None) -> str:
    reason = (reason or '').strip()
    if reason:
        return f'Cancelled by {role}: {reason}'
    return f'Cancelled by {role}'


def append_note(existing: str | None, note: str | None) -> str | None:
    note = (note or '').strip()
    if not note:
        return existing
    if existing:
        return f'{existing}\n{note}'
    return note


def transition(
    appointment: Appointment,
    target: str,
    role: str,
    today: date,
    notes: str | None = None,
) -> Appointment:
    """Move ``appointment`` to ``target`` on behalf of ``role``.

    Patients may only cancel, and only while the appointment is at least a day
    away. Doctors and admins are exempt from that window. Cancellations replace
    ``notes`` with a note tagged with the cancelling role; other moves append
    the given notes. The caller commits.
    """
    current = appointment.status
    check_transition(current, target, role)

    if target == CANCELLED:
        if role == PATIENT and not can_patient_cancel(appointment, today):
            raise CancellationWindowExpired(
                'Appointments can only be cancelled by the patient at least '
                f'{config.PATIENT_CANCELLATION_MIN_DAYS} day(s) in advance. '
                'Contact the clinic to cancel.',
                doctor_id=appointment.doctor_id,
                date=appointment.date,
                time=appointment.time,
                appointment_id=appointment.id,
            )
        appointment.notes = cancellation_note(role, notes)
    else:
        appointment.notes = append_note(appointment.notes, notes)

    appointment.status = target
    logger.info(
        'Appointment %s moved %s -> %s by %s (doctor=%s date=%s time=%s)',
        appointment.id, current, target, role, appointment.doctor_id, appointment.date, appointment.time,
    )
    return appointment


def add_notes(appointment: Appointment, notes: str, role: str) -> Appointment:
    if role not in STAFF_ROLES:
        raise NotPermitted('Only doctors and admins can add notes.', appointment_id=appointment.id)
    if not (notes or '').strip():
        raise InvalidRequest('Notes are required.', appointment_id=appointment.id)

    appointment.notes = append_note(appointment.notes, notes)
    return appointment
