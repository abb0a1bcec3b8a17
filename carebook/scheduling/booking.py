import logging
from datetime import date, datetime
from threading import Lock

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from carebook.core import config
from carebook.models.appointment import CANCELLED, PENDING, Appointment
from carebook.models.doctor import Doctor
from carebook.models.user import User
from carebook.scheduling.errors import (
    AppointmentNotFound,
    DoctorNotFound,
    InvalidRequest,
    NotPermitted,
    PastDate,
    SlotConflict,
)
from carebook.scheduling.lifecycle import ADMIN, PATIENT, cancellation_note, check_transition
from carebook.scheduling.slots import normalize_template, normalize_time, parse_date, resolve_candidates
from carebook.scheduling.views import ScopeKind, ViewScope

logger = logging.getLogger(__name__)

_registry_lock = Lock()
_doctor_locks: dict[int, Lock] = {}


def doctor_lock(doctor_id: int) -> Lock:
    """Serialization point for slot writes against one doctor's calendar.

    The partial unique index on active slots backs this up across processes.
    """
    with _registry_lock:
        lock = _doctor_locks.get(doctor_id)
        if lock is None:
            lock = _doctor_locks[doctor_id] = Lock()
        return lock


def get_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if doctor is None:
        raise DoctorNotFound('Doctor not found.', doctor_id=doctor_id)
    return doctor


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise AppointmentNotFound('Appointment not found.', appointment_id=appointment_id)
    return appointment


def get_patient(db: Session, patient_id: int) -> User:
    patient = db.query(User).filter(User.id == patient_id, User.role == PATIENT).first()
    if patient is None:
        raise InvalidRequest('Patient not found.')
    return patient


def save_availability_template(db: Session, doctor: Doctor, raw_template: dict | None) -> dict[str, list[str]]:
    template = normalize_template(raw_template)
    doctor.available_slots = template
    db.commit()
    db.refresh(doctor)
    logger.info('Saved weekly availability for doctor %s (%d days)', doctor.id, len(template))
    return template


def list_appointments(
    db: Session,
    scope: ViewScope,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Appointment]:
    query = db.query(Appointment)

    if scope.kind is ScopeKind.PATIENT:
        query = query.filter(Appointment.patient_id == scope.value)
    elif scope.kind is ScopeKind.DOCTOR:
        query = query.filter(Appointment.doctor_id == scope.value)
    elif scope.kind is ScopeKind.CLINIC:
        query = query.filter(Appointment.clinic_id == scope.value)

    if date_from is not None:
        query = query.filter(Appointment.date >= date_from)
    if date_to is not None:
        query = query.filter(Appointment.date <= date_to)

    return query.order_by(Appointment.date.desc(), Appointment.time.desc()).all()


def find_active(
    db: Session,
    doctor_id: int,
    slot_date: date,
    slot_time: str,
    exclude_id: int | None = None,
) -> Appointment | None:
    query = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date == slot_date,
        Appointment.time == slot_time,
        Appointment.status != CANCELLED,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.first()


def taken_times(db: Session, doctor_id: int, slot_date: date) -> set[str]:
    rows = db.query(Appointment.time).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date == slot_date,
        Appointment.status != CANCELLED,
    ).all()
    return {slot_time for (slot_time,) in rows}


def bookable_times(db: Session, doctor: Doctor, target_date: date | str) -> list[str]:
    slot_date = parse_date(target_date)
    candidates = resolve_candidates(doctor.available_slots, slot_date)
    if not candidates:
        return []

    taken = taken_times(db, doctor.id, slot_date)
    return [slot_time for slot_time in candidates if slot_time not in taken]


def _slot_conflict(doctor_id: int, slot_date: date, slot_time: str) -> SlotConflict:
    return SlotConflict(
        'This time slot is already booked. Please choose another time.',
        doctor_id=doctor_id,
        date=slot_date,
        time=slot_time,
    )


def book(
    db: Session,
    doctor: Doctor,
    patient_id: int | None,
    slot_date: date | str | None,
    slot_time: str | None,
    reason: str | None,
    *,
    today: date,
    clinic_id: int | None = None,
    now: datetime | None = None,
) -> Appointment:
    """Create a pending appointment, or raise if the slot cannot be taken.

    The free-slot check and the insert run under the doctor's lock. An
    integrity error on commit becomes a :class:`SlotConflict` only when
    another appointment now holds the slot; anything else propagates.
    """
    reason = (reason or '').strip()
    if patient_id is None:
        raise InvalidRequest('Patient is required.', doctor_id=doctor.id)
    if slot_date is None or not str(slot_date).strip():
        raise InvalidRequest('Date is required.', doctor_id=doctor.id)
    if not (slot_time or '').strip():
        raise InvalidRequest('Time is required.', doctor_id=doctor.id, date=slot_date)
    if not reason:
        raise InvalidRequest('Reason for visit is required.', doctor_id=doctor.id, date=slot_date, time=slot_time)
    if len(reason) > config.MAX_REASON_LENGTH:
        raise InvalidRequest(f'Reason must be {config.MAX_REASON_LENGTH} characters or fewer.', doctor_id=doctor.id)

    appointment_date = parse_date(slot_date)
    appointment_time = normalize_time(slot_time)

    if appointment_date < today:
        raise PastDate(
            'Appointments cannot be booked in the past.',
            doctor_id=doctor.id,
            date=appointment_date,
            time=appointment_time,
        )

    get_patient(db, patient_id)

    if clinic_id is not None and doctor.clinic_id is not None and clinic_id != doctor.clinic_id:
        raise InvalidRequest('Doctor does not practice at this clinic.', doctor_id=doctor.id)

    if appointment_time not in resolve_candidates(doctor.available_slots, appointment_date):
        raise InvalidRequest(
            'Doctor is not available at this time.',
            doctor_id=doctor.id,
            date=appointment_date,
            time=appointment_time,
        )

    with doctor_lock(doctor.id):
        if find_active(db, doctor.id, appointment_date, appointment_time) is not None:
            logger.warning(
                'Slot conflict booking doctor=%s date=%s time=%s',
                doctor.id, appointment_date, appointment_time,
            )
            raise _slot_conflict(doctor.id, appointment_date, appointment_time)

        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient_id,
            clinic_id=doctor.clinic_id if clinic_id is None else clinic_id,
            date=appointment_date,
            time=appointment_time,
            status=PENDING,
            reason=reason,
            notes=None,
            created_at=now or datetime.now(),
        )
        db.add(appointment)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if find_active(db, doctor.id, appointment_date, appointment_time) is None:
                raise
            logger.warning(
                'Slot conflict (unique index) booking doctor=%s date=%s time=%s',
                doctor.id, appointment_date, appointment_time,
            )
            raise _slot_conflict(doctor.id, appointment_date, appointment_time) from exc
        db.refresh(appointment)

    logger.info(
        'Booked appointment %s doctor=%s patient=%s date=%s time=%s',
        appointment.id, doctor.id, patient_id, appointment_date, appointment_time,
    )
    return appointment


def reschedule(
    db: Session,
    appointment: Appointment,
    new_date: date | str,
    new_time: str,
    *,
    role: str,
    today: date,
    status: str | None = None,
    notes: str | None = None,
) -> Appointment:
    """Admin-only move of an appointment to another slot of the same doctor.

    On conflict neither the moved appointment nor the slot holder changes.
    """
    if role != ADMIN:
        raise NotPermitted('Only admins can reschedule appointments.', appointment_id=appointment.id)

    target_date = parse_date(new_date)
    target_time = normalize_time(new_time)
    target_status = status or appointment.status

    if target_date < today:
        raise PastDate(
            'Appointments cannot be moved into the past.',
            doctor_id=appointment.doctor_id,
            date=target_date,
            time=target_time,
            appointment_id=appointment.id,
        )
    if target_status != appointment.status:
        check_transition(appointment.status, target_status, ADMIN)
    if notes is not None and len(notes) > config.MAX_NOTES_LENGTH:
        raise InvalidRequest(f'Notes must be {config.MAX_NOTES_LENGTH} characters or fewer.')

    appointment_id = appointment.id
    doctor_id = appointment.doctor_id
    status_changed = target_status != appointment.status

    with doctor_lock(doctor_id):
        if target_status != CANCELLED:
            holder = find_active(db, doctor_id, target_date, target_time, exclude_id=appointment_id)
            if holder is not None:
                logger.warning(
                    'Slot conflict rescheduling appointment %s onto doctor=%s date=%s time=%s (held by %s)',
                    appointment_id, doctor_id, target_date, target_time, holder.id,
                )
                raise _slot_conflict(doctor_id, target_date, target_time)

        previous = (appointment.date, appointment.time)
        appointment.date = target_date
        appointment.time = target_time
        appointment.status = target_status
        if status_changed and target_status == CANCELLED:
            appointment.notes = cancellation_note(ADMIN, notes)
        elif notes is not None:
            appointment.notes = notes.strip() or None
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if find_active(db, doctor_id, target_date, target_time, exclude_id=appointment_id) is None:
                raise
            raise _slot_conflict(doctor_id, target_date, target_time) from exc
        db.refresh(appointment)

    logger.info(
        'Rescheduled appointment %s from %s %s to %s %s',
        appointment.id, previous[0], previous[1], target_date, target_time,
    )
    return appointment


def delete_appointment(db: Session, appointment: Appointment) -> None:
    appointment_id = appointment.id
    db.delete(appointment)
    db.commit()
    logger.info('Deleted appointment %s', appointment_id)
