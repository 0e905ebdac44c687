"""Appointment model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from hospital_backend.core.clock import utc_now
from hospital_backend.database import Base

STATUS_BOOKED = 'booked'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'
STATUS_EXPIRED = 'expired'
APPOINTMENT_STATUSES = (STATUS_BOOKED, STATUS_COMPLETED, STATUS_CANCELLED, STATUS_EXPIRED)
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED, STATUS_EXPIRED})


class Appointment(Base):
    """Represents a scheduled appointment between a patient and a doctor."""
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('booked', 'completed', 'cancelled', 'expired')",
            name='ck_appointments_status',
        ),
        Index('idx_appointments_status_scheduled', 'status', 'scheduled_time'),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    scheduled_time = Column(DateTime, nullable=False)
    reason = Column(String)
    status = Column(String, nullable=False, default=STATUS_BOOKED)
    notification_sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
