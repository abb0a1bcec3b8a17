from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from carebook.database import ensure_appointment_schema, ensure_doctor_schema
from carebook.scheduling.errors import (
    AppointmentNotFound,
    CancellationWindowExpired,
    DoctorNotFound,
    InvalidRequest,
    InvalidTransition,
    NotPermitted,
    PastDate,
    SchedulingError,
    SlotConflict,
)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

ERROR_STATUS_CODES = [
    (InvalidRequest, status.HTTP_400_BAD_REQUEST),
    (PastDate, status.HTTP_400_BAD_REQUEST),
    (SlotConflict, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (CancellationWindowExpired, status.HTTP_403_FORBIDDEN),
    (NotPermitted, status.HTTP_403_FORBIDDEN),
    (AppointmentNotFound, status.HTTP_404_NOT_FOUND),
    (DoctorNotFound, status.HTTP_404_NOT_FOUND),
]


def to_http_exception(exc: SchedulingError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.detail)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.detail)


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        ensure_doctor_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
