import jwt
import pytest
from fastapi import HTTPException

from booking_engine.auth.dependencies import parse_role, principal_from_token, require_consumer, require_provider
from booking_engine.auth.jwt_handler import create_access_token
from booking_engine.core import config
from booking_engine.core.errors import Forbidden
from booking_engine.models.enums import Role


@pytest.mark.parametrize(
    ('claim', 'role'),
    [
        ('PROVIDER', Role.PROVIDER),
        ('ROLE_PROVIDER', Role.PROVIDER),
        (' consumer ', Role.CONSUMER),
        ('ROLE_PATIENT', Role.CONSUMER),
        ('user', Role.CONSUMER),
    ],
)
def test_parse_role_accepts_known_aliases(claim: str, role: Role) -> None:
    assert parse_role(claim) == role


def test_parse_role_rejects_unknown_roles() -> None:
    with pytest.raises(ValueError):
        parse_role('ADMIN')


def test_principal_from_token_reads_subject_and_role() -> None:
    principal = principal_from_token(create_access_token(42, 'ROLE_PROVIDER'))

    assert principal.user_id == 42
    assert principal.role == Role.PROVIDER
    assert principal.is_provider


def test_principal_from_token_rejects_bad_signature() -> None:
    token = jwt.encode({'sub': '42', 'role': 'PROVIDER'}, 'another-secret', algorithm=config.JWT_ALGORITHM)

    with pytest.raises(HTTPException) as exception_info:
        principal_from_token(token)

    assert exception_info.value.status_code == 401


@pytest.mark.parametrize(
    'payload',
    [
        {'sub': 'someone@example.com', 'role': 'CONSUMER'},
        {'role': 'CONSUMER'},
        {'sub': '42', 'role': 'ADMIN'},
    ],
)
def test_principal_from_token_rejects_unusable_claims(payload: dict) -> None:
    token = jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)

    with pytest.raises(HTTPException) as exception_info:
        principal_from_token(token)

    assert exception_info.value.status_code == 401


def test_role_guards_reject_the_other_role() -> None:
    provider = principal_from_token(create_access_token(1, 'PROVIDER'))
    consumer = principal_from_token(create_access_token(7, 'CONSUMER'))

    assert require_provider(provider) == provider
    assert require_consumer(consumer) == consumer
    with pytest.raises(Forbidden):
        require_provider(consumer)
    with pytest.raises(Forbidden):
        require_consumer(provider)
