from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from carebook.auth.dependencies import get_current_user, get_db
from carebook.models.doctor import Doctor
from carebook.models.user import User

router = APIRouter(tags=['auth'])


class CurrentUserResponse(BaseModel):
    id: int
    email: str
    role: str
    clinic_id: int | None = None
    doctor_id: int | None = None


@router.get('/me', response_model=CurrentUserResponse)
def me(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    doctor_id = None
    if current_user.role == 'doctor':
        doctor = db.query(Doctor).filter(Doctor.user_id == current_user.id).first()
        if doctor is not None:
            doctor_id = doctor.id

    return CurrentUserResponse(
        id=current_user.id,
        email=current_user.email,
        role=current_user.role,
        clinic_id=current_user.clinic_id,
        doctor_id=doctor_id,
    )
