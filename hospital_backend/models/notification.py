"""Notification model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text
from hospital_backend.core.clock import utc_now
from hospital_backend.database import Base

NOTIFICATION_APPOINTMENT_EXPIRED = 'appointment_expired'


class Notification(Base):
    """A message delivered to a user about an appointment event."""
    __tablename__ = "notifications"
    __table_args__ = (
        # One expiration notice per appointment.
        Index(
            'uq_notifications_expired_appointment',
            'appointment_id',
            unique=True,
            sqlite_where=text("type = 'appointment_expired'"),
            postgresql_where=text("type = 'appointment_expired'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False)
    message = Column(String, nullable=False)
    type = Column(String, nullable=False)
    sent_at = Column(DateTime, nullable=False, default=utc_now)
