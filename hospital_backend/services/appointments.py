import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from hospital_backend.core.clock import to_naive_utc
from hospital_backend.database import transaction
from hospital_backend.models.appointment import STATUS_BOOKED, Appointment
from hospital_backend.models.user import ROLE_DOCTOR, User
from hospital_backend.services.exceptions import (
    DoctorNotFoundError,
    InvalidScheduledTimeError,
    PatientNotFoundError,
)

logger = logging.getLogger(__name__)


def parse_scheduled_time(value: datetime | str) -> datetime:
    """Parse an ISO 8601 timestamp into naive UTC. Naive input is taken as UTC."""
    if isinstance(value, datetime):
        return to_naive_utc(value)

    if not isinstance(value, str) or not value.strip():
        raise InvalidScheduledTimeError('scheduled_time must be a valid ISO date string')

    normalized = value.strip()
    if normalized.endswith(('Z', 'z')):
        normalized = f'{normalized[:-1]}+00:00'

    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise InvalidScheduledTimeError('scheduled_time must be a valid ISO date string') from exc

    return to_naive_utc(parsed)


def create_appointment(
    db: Session,
    patient_id: int,
    doctor_id: int,
    scheduled_time: datetime | str,
    reason: str | None = None,
) -> Appointment:
    scheduled_at = parse_scheduled_time(scheduled_time)

    doctor = db.scalar(select(User).where(User.id == doctor_id, User.role == ROLE_DOCTOR))
    if doctor is None:
        raise DoctorNotFoundError('Doctor not found')

    if db.get(User, patient_id) is None:
        raise PatientNotFoundError('Patient not found')

    reason = (reason or '').strip() or None

    with transaction(db):
        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            scheduled_time=scheduled_at,
            reason=reason,
            status=STATUS_BOOKED,
            notification_sent=False,
        )
        db.add(appointment)

    db.refresh(appointment)
    logger.info('Appointment %s booked with doctor %s for patient %s', appointment.id, doctor_id, patient_id)
    return appointment


def list_appointments_for_user(db: Session, user: User) -> list[tuple[Appointment, User]]:
    """Return the user's appointments paired with the other party, latest first.

    Doctors see their schedule with each patient; everyone else sees their own
    bookings with each doctor.
    """
    counterpart = aliased(User)
    if user.role == ROLE_DOCTOR:
        statement = (
            select(Appointment, counterpart)
            .join(counterpart, counterpart.id == Appointment.patient_id)
            .where(Appointment.doctor_id == user.id)
        )
    else:
        statement = (
            select(Appointment, counterpart)
            .join(counterpart, counterpart.id == Appointment.doctor_id)
            .where(Appointment.patient_id == user.id)
        )

    rows = db.execute(statement.order_by(Appointment.scheduled_time.desc(), Appointment.id.desc())).all()
    return [(appointment, other) for appointment, other in rows]
