from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carebook.auth.dependencies import get_current_user, get_db, get_today
from carebook.core import config
from carebook.models.appointment import Appointment
from carebook.models.doctor import Doctor
from carebook.models.user import User
from carebook.routes.common import database_unavailable, ensure_database_ready, to_http_exception
from carebook.scheduling import booking, lifecycle
from carebook.scheduling.errors import SchedulingError
from carebook.scheduling.lifecycle import ADMIN, DOCTOR, PATIENT
from carebook.scheduling.views import Bucket, SortOrder, ViewScope, count_buckets, filter_appointments

router = APIRouter(tags=['appointments'])


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    patient_id: int | None = None
    clinic_id: int | None = None
    date: date
    time: str
    reason: str

    @field_validator('time', 'reason')
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()


class UpdateAppointmentRequest(BaseModel):
    status: str | None = None
    notes: str | None = None
    new_date: date | None = Field(default=None, alias='date')
    new_time: str | None = Field(default=None, alias='time')

    class Config:
        populate_by_name = True

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().lower()

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > config.MAX_NOTES_LENGTH:
            raise ValueError(f'Notes must be {config.MAX_NOTES_LENGTH} characters or fewer.')

        return normalized


class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    clinic_id: int | None = None
    date: date
    time: str
    status: str
    reason: str
    notes: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


def resolve_scope(db: Session, current_user: User) -> ViewScope:
    if current_user.role == PATIENT:
        return ViewScope.for_patient(current_user.id)

    if current_user.role == DOCTOR:
        doctor = db.query(Doctor).filter(Doctor.user_id == current_user.id).first()
        if doctor is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='No doctor profile is linked to this account.',
            )
        return ViewScope.for_doctor(doctor.id)

    if current_user.role == ADMIN:
        if current_user.clinic_id is not None:
            return ViewScope.for_clinic(current_user.clinic_id)
        return ViewScope.unrestricted()

    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Unknown role.')


def ensure_in_scope(scope: ViewScope, appointment: Appointment) -> None:
    if not scope.contains(appointment):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='You do not have access to this appointment.',
        )


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    bucket: Bucket = Bucket.ALL,
    order: SortOrder | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str | None = None,
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        scope = resolve_scope(db, current_user)
        appointments = booking.list_appointments(db, scope, date_from=date_from, date_to=date_to)
        return filter_appointments(appointments, scope, bucket, today, order=order, search=search)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/summary', response_model=dict[str, int])
def summarize_appointments(
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        scope = resolve_scope(db, current_user)
        return count_buckets(booking.list_appointments(db, scope), scope, today)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        scope = resolve_scope(db, current_user)
        doctor = booking.get_doctor(db, data.doctor_id)

        if current_user.role == PATIENT:
            patient_id = data.patient_id or current_user.id
            if patient_id != current_user.id:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail='Cannot create appointment for another patient.',
                )
        else:
            patient_id = data.patient_id
            if current_user.role == DOCTOR and scope.value != doctor.id:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Cannot book appointments on another doctor's calendar.",
                )
            if current_user.role == ADMIN and current_user.clinic_id not in (None, doctor.clinic_id):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail='Doctor belongs to another clinic.',
                )

        return booking.book(
            db,
            doctor,
            patient_id,
            data.date,
            data.time,
            data.reason,
            today=today,
            clinic_id=data.clinic_id,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
):
    """Apply a status change, add notes, or (admins only) move the appointment."""
    ensure_database_ready()

    try:
        scope = resolve_scope(db, current_user)
        appointment = booking.get_appointment(db, appointment_id)
        ensure_in_scope(scope, appointment)

        if data.new_date is not None or data.new_time is not None:
            return booking.reschedule(
                db,
                appointment,
                data.new_date or appointment.date,
                data.new_time or appointment.time,
                role=current_user.role,
                today=today,
                status=data.status,
                notes=data.notes,
            )

        if data.status is not None:
            lifecycle.transition(appointment, data.status, current_user.role, today, notes=data.notes)
        elif data.notes is not None:
            lifecycle.add_notes(appointment, data.notes, current_user.role)
        else:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='No changes requested.')

        db.commit()
        db.refresh(appointment)
        return appointment
    except SchedulingError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if current_user.role != ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only admins can delete appointments.',
        )

    ensure_database_ready()

    try:
        scope = resolve_scope(db, current_user)
        appointment = booking.get_appointment(db, appointment_id)
        ensure_in_scope(scope, appointment)
        booking.delete_appointment(db, appointment)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
