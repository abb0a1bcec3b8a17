from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carebook.auth.dependencies import get_current_user, get_db
from carebook.models.user import User
from carebook.routes.common import database_unavailable, ensure_database_ready, to_http_exception
from carebook.scheduling.booking import bookable_times, get_doctor, save_availability_template
from carebook.scheduling.errors import SchedulingError
from carebook.scheduling.lifecycle import DOCTOR
from carebook.scheduling.slots import WEEKDAYS, parse_date, weekday_name

router = APIRouter(tags=['schedule'])


class AvailabilityTemplateRequest(BaseModel):
    available_slots: dict[str, list[str]]


class AvailabilityTemplateResponse(BaseModel):
    doctor_id: int
    available_slots: dict[str, list[str]]


class BookableTimesResponse(BaseModel):
    doctor_id: int
    date: date
    weekday: str
    times: list[str]


@router.get('/weekdays', response_model=list[str])
def list_weekdays():
    return list(WEEKDAYS)


@router.get('/{doctor_id}/availability', response_model=AvailabilityTemplateResponse)
def get_availability_template(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        doctor = get_doctor(db, doctor_id)
        return AvailabilityTemplateResponse(doctor_id=doctor.id, available_slots=doctor.available_slots or {})
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{doctor_id}/availability', response_model=AvailabilityTemplateResponse)
def update_availability_template(
    doctor_id: int,
    data: AvailabilityTemplateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        doctor = get_doctor(db, doctor_id)
        if current_user.role != DOCTOR or doctor.user_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the doctor who owns this schedule can change it.',
            )

        template = save_availability_template(db, doctor, data.available_slots)
        return AvailabilityTemplateResponse(doctor_id=doctor.id, available_slots=template)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{doctor_id}/available-times', response_model=BookableTimesResponse)
def list_available_times(doctor_id: int, date: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        slot_date = parse_date(date)
        doctor = get_doctor(db, doctor_id)
        return BookableTimesResponse(
            doctor_id=doctor.id,
            date=slot_date,
            weekday=weekday_name(slot_date),
            times=bookable_times(db, doctor, slot_date),
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
