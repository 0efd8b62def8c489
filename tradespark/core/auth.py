import logging
from enum import Enum
from typing import Any

import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, Field

from tradespark.core.config import settings
from tradespark.core.errors import ErrorCode, ErrorMessage, not_found, unauthorized
from tradespark.backend.client import BackendClient, BackendError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/signin", auto_error=False)


class Route(str, Enum):
    SIGN_IN = "signin"
    DASHBOARD = "dashboard"
    COMPLETE_PROFILE = "complete-profile"


class AuthSession(BaseModel):
    access_token: str
    auth_id: str
    email: str | None = None
    phone: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)


def decode_access_token(token: str) -> AuthSession:
    payload = jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=[JWT_ALGORITHM],
        audience=settings.SUPABASE_JWT_AUDIENCE,
        options={"verify_exp": True},
    )

    auth_id = payload.get("sub")
    if not auth_id:
        raise jwt.InvalidTokenError("Token has no subject")

    return AuthSession(
        access_token=token,
        auth_id=str(auth_id),
        email=payload.get("email") or None,
        phone=payload.get("phone") or None,
        user_metadata=payload.get("user_metadata") or {},
    )


def get_current_session(token: str | None = Depends(oauth2_scheme)) -> AuthSession:
    if not token:
        raise unauthorized()

    try:
        return decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise unauthorized(ErrorMessage.SESSION_EXPIRED)
    except jwt.InvalidTokenError:
        raise unauthorized("Invalid token")


def get_optional_session(token: str | None = Depends(oauth2_scheme)) -> AuthSession | None:
    if not token:
        return None
    try:
        return decode_access_token(token)
    except jwt.InvalidTokenError:
        return None


def resolve_route(session: AuthSession | None) -> Route:
    """Launch gate: signed-in users go to the tabs, everyone else to sign-in."""
    if session is None:
        return Route.SIGN_IN
    return Route.DASHBOARD


async def resolve_app_user_id(backend: BackendClient, auth_id: str) -> str:
    try:
        row = await backend.table("users").select("id").eq("auth_id", auth_id).single()
    except BackendError as e:
        logger.warning("User lookup failed for %s: %s", auth_id, e.message)
        raise not_found(ErrorCode.USER_NOT_FOUND, ErrorMessage.USER_DATA_FAILED)

    return str(row["id"])
