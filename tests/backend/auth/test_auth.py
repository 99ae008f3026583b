from types import SimpleNamespace

import jwt
import pytest
from fastapi import HTTPException

from backend.auth import jwt_handler
from backend.auth.dependencies import require_roles, resolve_token_user
from backend.auth.passwords import hash_password, verify_password
from backend.models.user import ROLE_ADMIN, ROLE_PATIENT, ROLE_PROVIDER


def test_access_token_round_trip_carries_role_claim() -> None:
    token = jwt_handler.create_access_token(subject='7', role=ROLE_PROVIDER)

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == '7'
    assert payload['role'] == ROLE_PROVIDER
    assert payload['exp'] > payload['iat']


def test_decode_access_token_rejects_foreign_signature() -> None:
    token = jwt.encode({'sub': '7'}, 'someone-elses-secret', algorithm='HS256')

    with pytest.raises(jwt.InvalidTokenError):
        jwt_handler.decode_access_token(token)


def test_decode_access_token_rejects_expired_token() -> None:
    token = jwt_handler.create_access_token(subject='7', expires_minutes=-1)

    with pytest.raises(jwt.ExpiredSignatureError):
        jwt_handler.decode_access_token(token)


def test_hash_password_round_trip() -> None:
    hashed = hash_password('clave-segura')

    assert hashed != 'clave-segura'
    assert verify_password('clave-segura', hashed)
    assert not verify_password('otra-clave', hashed)


@pytest.mark.parametrize('stored', [None, '', 'plain-text'])
def test_verify_password_rejects_missing_or_foreign_hashes(stored) -> None:
    assert not verify_password('clave-segura', stored)


def test_require_roles_admits_allowed_role() -> None:
    checker = require_roles(ROLE_ADMIN, ROLE_PROVIDER)
    user = SimpleNamespace(role=ROLE_PROVIDER)

    assert checker(current_user=user) is user


def test_require_roles_rejects_other_roles() -> None:
    checker = require_roles(ROLE_ADMIN)

    with pytest.raises(HTTPException) as exception_info:
        checker(current_user=SimpleNamespace(role=ROLE_PATIENT))

    assert exception_info.value.status_code == 403


def test_resolve_token_user_loads_role_from_database(db, make_user) -> None:
    user = make_user(ROLE_PATIENT)
    # A forged role claim does not override the stored role.
    token = jwt_handler.create_access_token(subject=str(user.id), role=ROLE_ADMIN)

    resolved = resolve_token_user(token, db)

    assert resolved.id == user.id
    assert resolved.role == ROLE_PATIENT


@pytest.mark.parametrize('subject', ['999', 'not-a-number'])
def test_resolve_token_user_rejects_unknown_subjects(db, subject: str) -> None:
    token = jwt_handler.create_access_token(subject=subject)

    with pytest.raises(HTTPException) as exception_info:
        resolve_token_user(token, db)

    assert exception_info.value.status_code == 401


def test_resolve_token_user_rejects_garbage_token(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        resolve_token_user('garbage', db)

    assert exception_info.value.status_code == 401
