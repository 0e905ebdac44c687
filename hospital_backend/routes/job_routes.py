from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from hospital_backend.auth.dependencies import require_roles
from hospital_backend.models.user import ROLE_ADMIN
from hospital_backend.routes.appointment_routes import DATABASE_UNAVAILABLE_DETAIL, to_http_exception
from hospital_backend.scheduler import ExpirationScheduler, get_expiration_scheduler
from hospital_backend.services.exceptions import SweepInProgressError

router = APIRouter(tags=['jobs'])


class NotifiedPatientResponse(BaseModel):
    recipient_address: str
    appointment_id: int


class ExpirationSweepResponse(BaseModel):
    retired_count: int
    notified: list[NotifiedPatientResponse]


@router.post(
    '/check-expired-appointments',
    response_model=ExpirationSweepResponse,
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
def check_expired_appointments(
    expiration_scheduler: ExpirationScheduler = Depends(get_expiration_scheduler),
):
    try:
        result = expiration_scheduler.run_on_demand()
    except SweepInProgressError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    return ExpirationSweepResponse(
        retired_count=result.retired_count,
        notified=[
            NotifiedPatientResponse(recipient_address=item.recipient_address, appointment_id=item.appointment_id)
            for item in result.notified
        ],
    )
