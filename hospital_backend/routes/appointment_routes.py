from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hospital_backend.auth.dependencies import get_current_user, require_roles
from hospital_backend.database import ensure_appointment_schema, get_db
from hospital_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, User
from hospital_backend.services import appointments as appointment_service
from hospital_backend.services import transitions
from hospital_backend.services.exceptions import (
    AppointmentNotFoundError,
    AppointmentServiceError,
    AppointmentValidationError,
    DoctorNotFoundError,
    IllegalTransitionError,
    SweepInProgressError,
    TransitionForbiddenError,
)

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_REASON_LENGTH = 600
DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    scheduled_time: str
    reason: str | None = None
    patient_id: int | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_APPOINTMENT_REASON_LENGTH} characters or fewer.')

        return normalized


class UpdateAppointmentStatusRequest(BaseModel):
    status: str


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    scheduled_time: datetime
    reason: str | None = None
    status: str
    notification_sent: bool
    created_at: datetime

    class Config:
        from_attributes = True


class MyAppointmentResponse(AppointmentResponse):
    counterpart_name: str
    counterpart_email: str


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def to_http_exception(exc: AppointmentServiceError) -> HTTPException:
    if isinstance(exc, (DoctorNotFoundError, AppointmentNotFoundError)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, AppointmentValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, TransitionForbiddenError):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, (IllegalTransitionError, SweepInProgressError)):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=exc.detail)


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(require_roles(ROLE_PATIENT, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    patient_id = current_user.id
    if data.patient_id is not None and data.patient_id != current_user.id:
        if current_user.role != ROLE_ADMIN:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Patients can only book appointments for themselves.',
            )
        patient_id = data.patient_id

    ensure_database_ready()

    try:
        return appointment_service.create_appointment(
            db,
            patient_id=patient_id,
            doctor_id=data.doctor_id,
            scheduled_time=data.scheduled_time,
            reason=data.reason,
        )
    except AppointmentServiceError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/me', response_model=list[MyAppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        rows = appointment_service.list_appointments_for_user(db, current_user)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    return [
        MyAppointmentResponse(
            id=appointment.id,
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            scheduled_time=appointment.scheduled_time,
            reason=appointment.reason,
            status=appointment.status,
            notification_sent=appointment.notification_sent,
            created_at=appointment.created_at,
            counterpart_name=counterpart.name,
            counterpart_email=counterpart.email,
        )
        for appointment, counterpart in rows
    ]


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateAppointmentStatusRequest,
    current_user: User = Depends(require_roles(ROLE_DOCTOR, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return transitions.request_transition(
            db,
            appointment_id=appointment_id,
            target_status=data.status,
            requester_role=current_user.role,
            requester_id=current_user.id,
        )
    except AppointmentServiceError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
