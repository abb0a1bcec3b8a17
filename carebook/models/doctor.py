"""Doctor model definitions."""

from sqlalchemy import Column, Integer, ForeignKey, String, JSON
from carebook.database import Base


class Doctor(Base):
    """A doctor and the weekly schedule patients can book against."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True)
    clinic_id = Column(Integer, index=True)
    name = Column(String)
    specialization = Column(String)
    # {"monday": ["08:00", "08:30"], ...}
    available_slots = Column(JSON, nullable=False, default=dict)
