"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, Index, String, text
from carebook.database import ACTIVE_SLOT_INDEX_NAME, Base

PENDING = "pending"
CONFIRMED = "confirmed"
COMPLETED = "completed"
CANCELLED = "cancelled"

APPOINTMENT_STATUSES = (PENDING, CONFIRMED, COMPLETED, CANCELLED)


class Appointment(Base):
    """Represents a booked doctor visit."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    clinic_id = Column(Integer)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)
    status = Column(String, nullable=False, default=PENDING)
    reason = Column(String, nullable=False)
    notes = Column(String)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        # A cancelled appointment gives its slot back.
        Index(
            ACTIVE_SLOT_INDEX_NAME,
            "doctor_id",
            "date",
            "time",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
        Index("idx_appointments_patient_date", "patient_id", "date"),
        Index("idx_appointments_clinic_date", "clinic_id", "date"),
    )
