import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('EXPIRATION_SWEEP_ENABLED', 'false')

from hospital_backend.database import Base  # noqa: E402
from hospital_backend.models.appointment import STATUS_BOOKED, Appointment  # noqa: E402
from hospital_backend.models.notification import Notification  # noqa: E402
from hospital_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, User  # noqa: E402

TABLES = [User.__table__, Appointment.__table__, Notification.__table__]


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def appointment_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def _add_user(db, name: str, email: str, role: str) -> User:
    user = User(name=name, email=email, role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def people(appointment_db):
    return {
        'patient': _add_user(appointment_db, 'Patient', 'p@example.com', ROLE_PATIENT),
        'doctor': _add_user(appointment_db, 'Doctor', 'd@example.com', ROLE_DOCTOR),
        'other_doctor': _add_user(appointment_db, 'Other Doctor', 'od@example.com', ROLE_DOCTOR),
        'admin': _add_user(appointment_db, 'Admin', 'a@example.com', ROLE_ADMIN),
    }


@pytest.fixture
def make_appointment(appointment_db, people):
    def _make(scheduled_time, status=STATUS_BOOKED, doctor=None, patient=None) -> Appointment:
        appointment = Appointment(
            patient_id=(patient or people['patient']).id,
            doctor_id=(doctor or people['doctor']).id,
            scheduled_time=scheduled_time,
            status=status,
        )
        appointment_db.add(appointment)
        appointment_db.commit()
        appointment_db.refresh(appointment)
        return appointment

    return _make
