from datetime import timedelta

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from hospital_backend.core.clock import utc_now
from hospital_backend.routes.job_routes import check_expired_appointments, router
from hospital_backend.routes.notification_routes import list_my_notifications
from hospital_backend.scheduler import ExpirationScheduler
from hospital_backend.services.exceptions import SweepInProgressError


@pytest.fixture
def expiration_scheduler(session_factory):
    return ExpirationScheduler(
        session_factory=session_factory,
        lock_timeout_seconds=0.05,
        max_attempts=1,
        retry_max_wait_seconds=0,
    )


def test_check_expired_appointments_reports_retired_bookings(
    expiration_scheduler, appointment_db, make_appointment, people
) -> None:
    past = make_appointment(utc_now() - timedelta(hours=2))
    make_appointment(utc_now() + timedelta(hours=2))

    response = check_expired_appointments(expiration_scheduler=expiration_scheduler)

    assert response.retired_count == 1
    assert [(item.recipient_address, item.appointment_id) for item in response.notified] == [
        ('p@example.com', past.id)
    ]

    notifications = list_my_notifications(current_user=people['patient'], db=appointment_db)
    assert [notification.appointment_id for notification in notifications] == [past.id]
    assert notifications[0].type == 'appointment_expired'


def test_check_expired_appointments_with_nothing_pending(expiration_scheduler) -> None:
    response = check_expired_appointments(expiration_scheduler=expiration_scheduler)

    assert response.retired_count == 0
    assert response.notified == []


class _BusyScheduler:
    def run_on_demand(self):
        raise SweepInProgressError('An expiration sweep is already running. Try again shortly.')


class _UnavailableScheduler:
    def run_on_demand(self):
        raise OperationalError('SELECT', {}, Exception('unable to open database file'))


def test_check_expired_appointments_conflicts_when_sweep_running() -> None:
    with pytest.raises(HTTPException) as exception_info:
        check_expired_appointments(expiration_scheduler=_BusyScheduler())

    assert exception_info.value.status_code == 409


def test_check_expired_appointments_surfaces_store_failure() -> None:
    with pytest.raises(HTTPException) as exception_info:
        check_expired_appointments(expiration_scheduler=_UnavailableScheduler())

    assert exception_info.value.status_code == 503


def test_notifications_are_scoped_to_the_caller(appointment_db, people) -> None:
    assert list_my_notifications(current_user=people['doctor'], db=appointment_db) == []


def test_check_expired_appointments_is_admin_only(people) -> None:
    route = next(route for route in router.routes if route.path == '/check-expired-appointments')
    (admin_only,) = route.dependencies

    assert admin_only.dependency(current_user=people['admin']) is people['admin']
    with pytest.raises(HTTPException) as exception_info:
        admin_only.dependency(current_user=people['doctor'])

    assert exception_info.value.status_code == 403
