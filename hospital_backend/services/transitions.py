"""Appointment status state machine.

Every status change, whether requested by a doctor or admin or performed by
the expiration sweep, is checked against ``TRANSITION_RULES``. Completed,
cancelled and expired are terminal: no rule starts from them.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import update
from sqlalchemy.orm import Session

from hospital_backend.database import transaction
from hospital_backend.models.appointment import (
    APPOINTMENT_STATUSES,
    STATUS_BOOKED,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_EXPIRED,
    Appointment,
)
from hospital_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR
from hospital_backend.services.exceptions import (
    AppointmentNotFoundError,
    IllegalTransitionError,
    InvalidStatusError,
    TransitionForbiddenError,
)

logger = logging.getLogger(__name__)

# Actor used by the expiration sweep. Never a stored user role.
SYSTEM_ACTOR = 'system'

REQUESTER_ROLES = frozenset({ROLE_DOCTOR, ROLE_ADMIN})


def _requester_owns_appointment(appointment: Appointment, actor_role: str, actor_id: int | None) -> bool:
    if actor_role == ROLE_DOCTOR:
        return appointment.doctor_id == actor_id
    return True


@dataclass(frozen=True)
class TransitionRule:
    from_status: str
    to_status: str
    allowed_roles: frozenset[str]
    predicate: Callable[[Appointment, str, int | None], bool] | None = None


TRANSITION_RULES: tuple[TransitionRule, ...] = (
    TransitionRule(STATUS_BOOKED, STATUS_COMPLETED, REQUESTER_ROLES, _requester_owns_appointment),
    TransitionRule(STATUS_BOOKED, STATUS_CANCELLED, REQUESTER_ROLES, _requester_owns_appointment),
    TransitionRule(STATUS_BOOKED, STATUS_EXPIRED, frozenset({SYSTEM_ACTOR})),
)


def find_rule(from_status: str, to_status: str) -> TransitionRule | None:
    for rule in TRANSITION_RULES:
        if rule.from_status == from_status and rule.to_status == to_status:
            return rule
    return None


def normalize_status(value: str) -> str:
    normalized = (value or '').strip().lower()
    if normalized not in APPOINTMENT_STATUSES:
        raise InvalidStatusError(f"status must be one of {', '.join(APPOINTMENT_STATUSES)}")
    return normalized


def authorize_transition(
    appointment: Appointment,
    target_status: str,
    actor_role: str,
    actor_id: int | None = None,
) -> TransitionRule:
    """Return the rule admitting this change, or raise why it is denied."""
    target_status = normalize_status(target_status)

    if actor_role not in REQUESTER_ROLES and actor_role != SYSTEM_ACTOR:
        raise TransitionForbiddenError('Only doctors and admins can update appointment status.')

    if not _requester_owns_appointment(appointment, actor_role, actor_id):
        raise TransitionForbiddenError('You can only update your own appointments.')

    rule = find_rule(appointment.status, target_status)
    if rule is None:
        if appointment.is_terminal:
            raise IllegalTransitionError(
                f'Appointment is already {appointment.status} and can no longer change status.'
            )
        raise IllegalTransitionError(
            f'Cannot change appointment status from {appointment.status} to {target_status}.'
        )

    if actor_role not in rule.allowed_roles:
        if rule.to_status == STATUS_EXPIRED:
            raise IllegalTransitionError('Appointments are only expired by the expiration sweep.')
        raise IllegalTransitionError(f'Only {", ".join(sorted(rule.allowed_roles))} can perform this change.')

    if rule.predicate is not None and not rule.predicate(appointment, actor_role, actor_id):
        raise TransitionForbiddenError('You can only update your own appointments.')

    return rule


def request_transition(
    db: Session,
    appointment_id: int,
    target_status: str,
    requester_role: str,
    requester_id: int,
) -> Appointment:
    target_status = normalize_status(target_status)

    # SYSTEM_ACTOR is reserved for the expiration sweep, which pairs expiry with a notice.
    if requester_role not in REQUESTER_ROLES:
        raise TransitionForbiddenError('Only doctors and admins can update appointment status.')

    with transaction(db):
        appointment = db.get(Appointment, appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError('Appointment not found.')

        rule = authorize_transition(appointment, target_status, requester_role, requester_id)

        result = db.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.status == rule.from_status)
            .values(status=rule.to_status)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise IllegalTransitionError('Appointment status was changed by another request. Reload and retry.')

    db.refresh(appointment)
    logger.info(
        'Appointment %s moved %s -> %s by %s %s',
        appointment_id,
        rule.from_status,
        rule.to_status,
        requester_role,
        requester_id,
    )
    return appointment
