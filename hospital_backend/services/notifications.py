from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from hospital_backend.core.clock import format_utc
from hospital_backend.models.notification import NOTIFICATION_APPOINTMENT_EXPIRED, Notification


def compose_expiration_message(patient_name: str, scheduled_time: datetime) -> str:
    return (
        f'Hi {patient_name}, your appointment scheduled at {format_utc(scheduled_time)} '
        'has expired. Please book a new slot.'
    )


def emit_expiration_notice(
    db: Session,
    *,
    appointment_id: int,
    patient_id: int,
    patient_name: str,
    scheduled_time: datetime,
    sent_at: datetime,
) -> Notification:
    """Stage the expiration notice on the caller's open transaction.

    Nothing is committed here. The flush makes a failed insert raise inside the
    caller's transaction so the status change it accompanies is rolled back too.
    """
    notification = Notification(
        user_id=patient_id,
        appointment_id=appointment_id,
        message=compose_expiration_message(patient_name, scheduled_time),
        type=NOTIFICATION_APPOINTMENT_EXPIRED,
        sent_at=sent_at,
    )
    db.add(notification)
    db.flush()
    return notification


def list_notifications_for_user(db: Session, user_id: int) -> list[Notification]:
    return list(
        db.scalars(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.sent_at.desc(), Notification.id.desc())
        )
    )
