from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from hospital_backend.auth.dependencies import get_current_user, require_roles
from hospital_backend.core import config


def _credentials(claims: dict, secret: str | None = None) -> HTTPAuthorizationCredentials:
    token = jwt.encode(claims, secret or config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def _expiry(minutes: int = 5) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


def test_get_current_user_resolves_token_subject(appointment_db, people) -> None:
    user = get_current_user(credentials=_credentials({'sub': 'D@Example.com', 'exp': _expiry()}), db=appointment_db)

    assert user.id == people['doctor'].id
    assert user.role == 'doctor'


@pytest.mark.parametrize(
    'claims',
    [
        {'sub': 'd@example.com', 'exp': datetime.now(timezone.utc) - timedelta(minutes=1)},
        {'exp': datetime.now(timezone.utc) + timedelta(minutes=5)},
        {'sub': 'd@example.com'},
    ],
)
def test_get_current_user_rejects_invalid_tokens(appointment_db, people, claims: dict) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_credentials(claims), db=appointment_db)

    assert exception_info.value.status_code == 401


def test_get_current_user_rejects_wrong_signature(appointment_db, people) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(
            credentials=_credentials({'sub': 'd@example.com', 'exp': _expiry()}, secret='not-the-secret'),
            db=appointment_db,
        )

    assert exception_info.value.status_code == 401


def test_get_current_user_rejects_unknown_user(appointment_db, people) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_credentials({'sub': 'ghost@example.com', 'exp': _expiry()}), db=appointment_db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'User not found'


def test_require_roles_admits_listed_roles(people) -> None:
    dependency = require_roles('doctor', 'admin')

    assert dependency(current_user=people['admin']) is people['admin']


def test_require_roles_forbids_other_roles(people) -> None:
    dependency = require_roles('doctor', 'admin')

    with pytest.raises(HTTPException) as exception_info:
        dependency(current_user=people['patient'])

    assert exception_info.value.status_code == 403


def test_config_carries_only_token_verification_settings() -> None:
    assert config.JWT_ALGORITHM
    assert not hasattr(config, 'JWT_EXPIRES_MINUTES')
