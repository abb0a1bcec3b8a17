from datetime import date

import pytest
from fastapi import HTTPException

from carebook.models.user import User
from carebook.routes.common import to_http_exception
from carebook.routes.schedule_routes import (
    AvailabilityTemplateRequest,
    get_availability_template,
    list_available_times,
    list_weekdays,
    update_availability_template,
)
from carebook.scheduling.errors import SchedulingError, SlotConflict

TUESDAY = date(2025, 6, 10)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('carebook.routes.schedule_routes.ensure_database_ready', lambda: None)


@pytest.fixture
def doctor(make_doctor):
    return make_doctor()


@pytest.fixture
def doctor_user(db, doctor):
    return db.get(User, doctor.user_id)


def test_list_weekdays_is_monday_first() -> None:
    assert list_weekdays() == ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']


def test_new_doctor_has_empty_template(db, make_doctor) -> None:
    doctor = make_doctor('new@clinic.example', template={})

    response = get_availability_template(doctor_id=doctor.id, db=db)

    assert response.available_slots == {}


def test_get_availability_template(db, doctor) -> None:
    response = get_availability_template(doctor_id=doctor.id, db=db)

    assert response.doctor_id == doctor.id
    assert response.available_slots['tuesday'] == ['08:00', '09:00', '09:30']


def test_get_availability_template_unknown_doctor(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_availability_template(doctor_id=404, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail['doctor_id'] == 404


def test_owner_replaces_template(db, doctor, doctor_user) -> None:
    request = AvailabilityTemplateRequest(available_slots={'saturday': ['10:30', '10:00']})

    response = update_availability_template(doctor_id=doctor.id, data=request, current_user=doctor_user, db=db)

    assert response.available_slots == {'saturday': ['10:00', '10:30']}
    assert get_availability_template(doctor_id=doctor.id, db=db).available_slots == {'saturday': ['10:00', '10:30']}


@pytest.mark.parametrize('role', ['patient', 'admin', 'doctor'])
def test_only_owner_can_replace_template(db, doctor, make_user, role: str) -> None:
    intruder = make_user(f'{role}@example.com', role=role)
    request = AvailabilityTemplateRequest(available_slots={'monday': ['09:00']})

    with pytest.raises(HTTPException) as exception_info:
        update_availability_template(doctor_id=doctor.id, data=request, current_user=intruder, db=db)

    assert exception_info.value.status_code == 403


def test_invalid_template_is_rejected(db, doctor, doctor_user) -> None:
    request = AvailabilityTemplateRequest(available_slots={'monday': ['09:10']})

    with pytest.raises(HTTPException) as exception_info:
        update_availability_template(doctor_id=doctor.id, data=request, current_user=doctor_user, db=db)

    assert exception_info.value.status_code == 400


def test_available_times_exclude_taken_slots(db, doctor, make_user, make_appointment) -> None:
    patient = make_user('ada@example.com')
    make_appointment(doctor, patient, TUESDAY, '09:00', status='confirmed')
    make_appointment(doctor, patient, TUESDAY, '09:30', status='cancelled')

    response = list_available_times(doctor_id=doctor.id, date='2025-06-10', db=db)

    assert response.weekday == 'tuesday'
    assert response.date == TUESDAY
    assert response.times == ['08:00', '09:30']


def test_available_times_rejects_bad_date(db, doctor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_available_times(doctor_id=doctor.id, date='June 10', db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['error'] == 'InvalidDate'


def test_to_http_exception_maps_error_kinds() -> None:
    assert to_http_exception(SlotConflict('taken')).status_code == 409
    assert to_http_exception(SchedulingError('other')).status_code == 400
