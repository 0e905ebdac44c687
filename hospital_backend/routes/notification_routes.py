from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hospital_backend.auth.dependencies import get_current_user
from hospital_backend.database import get_db
from hospital_backend.models.user import User
from hospital_backend.routes.appointment_routes import DATABASE_UNAVAILABLE_DETAIL
from hospital_backend.services.notifications import list_notifications_for_user

router = APIRouter(tags=['notifications'])


class NotificationResponse(BaseModel):
    id: int
    appointment_id: int
    type: str
    message: str
    sent_at: datetime

    class Config:
        from_attributes = True


@router.get('/me', response_model=list[NotificationResponse])
def list_my_notifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return list_notifications_for_user(db, current_user.id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
