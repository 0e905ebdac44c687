"""
Expiration sweep: retire booked appointments whose time has passed.

Flow:
1. Capture the reference time once for the whole run.
2. Select booked appointments scheduled strictly before it, with the
   patient's name and email. An empty selection returns without writing.
3. In one transaction, for each candidate: check the booked -> expired rule,
   flip the status with a compare-and-set update, and stage the patient's
   expiration notice. Any failure rolls back the entire sweep.
4. Commit and report who was notified about which appointment.

Rows that stopped being booked between the selection and the update (a doctor
completed or cancelled them, or another sweep got there first) are skipped
rather than overwritten.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from hospital_backend.core.clock import to_naive_utc, utc_now
from hospital_backend.database import transaction
from hospital_backend.models.appointment import STATUS_BOOKED, STATUS_EXPIRED, Appointment
from hospital_backend.models.user import User
from hospital_backend.services.notifications import emit_expiration_notice
from hospital_backend.services.transitions import SYSTEM_ACTOR, authorize_transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotifiedPatient:
    recipient_address: str
    appointment_id: int


@dataclass(frozen=True)
class SweepResult:
    retired_count: int = 0
    notified: list[NotifiedPatient] = field(default_factory=list)


def select_expired_candidates(db: Session, reference_time: datetime):
    return db.execute(
        select(Appointment, User.name, User.email)
        .join(User, User.id == Appointment.patient_id)
        .where(
            Appointment.status == STATUS_BOOKED,
            Appointment.scheduled_time < reference_time,
        )
    ).all()


def retire_expired(db: Session, reference_time: datetime | None = None) -> SweepResult:
    now = to_naive_utc(reference_time) if reference_time is not None else utc_now()

    candidates = select_expired_candidates(db, now)
    if not candidates:
        db.rollback()
        return SweepResult()

    notified: list[NotifiedPatient] = []
    with transaction(db):
        for appointment, patient_name, patient_email in candidates:
            rule = authorize_transition(appointment, STATUS_EXPIRED, SYSTEM_ACTOR)

            result = db.execute(
                update(Appointment)
                .where(Appointment.id == appointment.id, Appointment.status == rule.from_status)
                .values(status=rule.to_status, notification_sent=True)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.info('Appointment %s changed status during sweep; not expiring it', appointment.id)
                continue

            emit_expiration_notice(
                db,
                appointment_id=appointment.id,
                patient_id=appointment.patient_id,
                patient_name=patient_name,
                scheduled_time=appointment.scheduled_time,
                sent_at=now,
            )
            notified.append(NotifiedPatient(recipient_address=patient_email, appointment_id=appointment.id))
            logger.debug('Expired appointment %s for %s', appointment.id, patient_email)

    logger.info('Expiration sweep at %s retired %d appointment(s)', now.isoformat(), len(notified))
    return SweepResult(retired_count=len(notified), notified=notified)
