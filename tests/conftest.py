import os
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('JWT_SECRET_KEY', 'carebook-test-secret-key-long-enough-for-hs256')

from carebook.database import Base  # noqa: E402
from carebook.models.appointment import Appointment  # noqa: E402
from carebook.models.doctor import Doctor  # noqa: E402
from carebook.models.user import User  # noqa: E402

# Monday. The following day, 2025-06-10, is a Tuesday.
TODAY = date(2025, 6, 9)
NOW = datetime(2025, 6, 9, 8, 30)

WEEKLY_TEMPLATE = {
    'monday': ['09:00', '09:30', '10:00'],
    'tuesday': ['08:00', '09:00', '09:30'],
    'friday': ['14:00'],
}


def create_schema(engine) -> None:
    Base.metadata.create_all(
        bind=engine,
        tables=[User.__table__, Doctor.__table__, Appointment.__table__],
    )


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    create_schema(engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, Doctor.__table__, User.__table__])
        engine.dispose()


@pytest.fixture
def make_user(db):
    def _make_user(email: str, role: str = 'patient', clinic_id: int | None = None) -> User:
        user = User(email=email, name=email.split('@')[0], role=role, clinic_id=clinic_id)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_doctor(db, make_user):
    def _make_doctor(email: str = 'house@clinic.example', clinic_id: int = 1, template: dict | None = None) -> Doctor:
        account = make_user(email, role='doctor')
        doctor = Doctor(
            user_id=account.id,
            clinic_id=clinic_id,
            name=account.name,
            specialization='General Practice',
            available_slots=WEEKLY_TEMPLATE if template is None else template,
        )
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make_doctor


@pytest.fixture
def make_appointment(db):
    def _make_appointment(
        doctor: Doctor,
        patient: User,
        slot_date: date,
        slot_time: str = '09:00',
        status: str = 'pending',
        reason: str = 'Checkup',
        notes: str | None = None,
    ) -> Appointment:
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            clinic_id=doctor.clinic_id,
            date=slot_date,
            time=slot_time,
            status=status,
            reason=reason,
            notes=notes,
            created_at=NOW,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment
