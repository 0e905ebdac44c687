from contextlib import contextmanager
from threading import Lock
from typing import Iterator

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from hospital_backend.core import config


connect_args = {'check_same_thread': False} if config.DATABASE_URL.startswith('sqlite') else {}
engine = create_engine(config.DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit the session's work on exit, or roll it back if anything raised."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)
        table_names = inspector.get_table_names()

        if 'appointments' not in table_names:
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('reason', 'ALTER TABLE appointments ADD COLUMN reason VARCHAR'),
            (
                'notification_sent',
                'ALTER TABLE appointments ADD COLUMN notification_sent BOOLEAN NOT NULL DEFAULT FALSE',
            ),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_status_scheduled '
                    'ON appointments(status, scheduled_time)'
                )
            )
            if 'notifications' in table_names:
                connection.execute(
                    text(
                        'CREATE UNIQUE INDEX IF NOT EXISTS uq_notifications_expired_appointment '
                        "ON notifications(appointment_id) WHERE type = 'appointment_expired'"
                    )
                )

        _appointment_schema_checked = True
