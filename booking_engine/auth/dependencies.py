from typing import NamedTuple

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from booking_engine.auth import jwt_handler
from booking_engine.core.errors import Forbidden
from booking_engine.models.enums import Role

security = HTTPBearer()


class Principal(NamedTuple):
    """The authenticated caller: a provider or a consumer id."""
    user_id: int
    role: Role

    @property
    def is_provider(self) -> bool:
        return self.role == Role.PROVIDER


def parse_role(value: str | None) -> Role:
    normalized = (value or "").strip().upper()
    if normalized.startswith("ROLE_"):
        normalized = normalized[len("ROLE_"):]
    if normalized in {"PATIENT", "USER"}:
        normalized = Role.CONSUMER.value
    return Role(normalized)


def principal_from_token(token: str) -> Principal:
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=401, detail="Invalid token subject") from exc

    try:
        role = parse_role(payload.get("role"))
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid token role") from exc

    return Principal(user_id=user_id, role=role)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    return principal_from_token(credentials.credentials)


def require_provider(current_user: Principal = Depends(get_current_user)) -> Principal:
    if current_user.role != Role.PROVIDER:
        raise Forbidden("Only providers can manage their calendar.")
    return current_user


def require_consumer(current_user: Principal = Depends(get_current_user)) -> Principal:
    if current_user.role != Role.CONSUMER:
        raise Forbidden("Only consumers can book appointments.")
    return current_user
