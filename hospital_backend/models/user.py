"""User model definitions."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from hospital_backend.core.clock import utc_now
from hospital_backend.database import Base

ROLE_PATIENT = 'patient'
ROLE_DOCTOR = 'doctor'
ROLE_ADMIN = 'admin'


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('patient', 'doctor', 'admin')", name='ck_users_role'),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(String, nullable=False, default=ROLE_PATIENT)  # patient/doctor/admin
    phone = Column(String)
    created_at = Column(DateTime, nullable=False, default=utc_now)
