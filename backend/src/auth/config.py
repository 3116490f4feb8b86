"""Identity resolution: the external auth service hands us a verified user and role."""

import enum
import logging
from dataclasses import dataclass
from uuid import UUID

import jwt
from fastapi import Request

from src.auth.exceptions import (
    InvalidTokenError,
    MissingTokenError,
    TokenExpiredError,
    UnknownAuthProviderError,
)
from src.auth.security import decode_access_token
from src.config.settings import get_settings


logger = logging.getLogger(__name__)

# THE ONLY USER ID CONSTANT IN THE ENTIRE CODEBASE
DEFAULT_USER_ID = UUID("00000000-0000-0000-0000-000000000001")


class Role(enum.StrEnum):
    """Roles the auth service may assign."""

    LEARNER = "LEARNER"
    INSTRUCTOR = "INSTRUCTOR"
    ADMIN = "ADMIN"


STAFF_ROLES = frozenset({Role.INSTRUCTOR, Role.ADMIN})


@dataclass(frozen=True)
class Identity:
    user_id: UUID
    role: Role


def _extract_token_from_request(request: Request) -> str | None:
    """Extract JWT token from request headers or cookies."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.removeprefix("Bearer ")

    cookie_token = request.cookies.get("access_token")
    if cookie_token:
        return cookie_token.removeprefix("Bearer ")

    return None


def _identity_from_token(token: str) -> Identity:
    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError as e:
        logger.debug("Token expired - client should refresh or re-authenticate")
        raise TokenExpiredError from e
    except jwt.PyJWTError as e:
        logger.warning("Rejected token: %s", e)
        raise InvalidTokenError from e

    try:
        user_id = UUID(payload["sub"])
        role = Role(payload.get("role", Role.LEARNER))
    except (KeyError, ValueError) as e:
        raise InvalidTokenError("Token carries a malformed subject or role") from e
    return Identity(user_id=user_id, role=role)


async def get_identity(request: Request) -> Identity:
    """
    Resolve the caller.

    Single-user mode: always DEFAULT_USER_ID with the ADMIN role.
    JWT mode: VALIDATES the bearer token or REJECTS the request.
    """
    settings = get_settings()

    if settings.AUTH_PROVIDER == "none":
        if settings.ENVIRONMENT == "production":
            logger.error("AUTH_PROVIDER='none' is not allowed in production!")
            error_msg = "Single-user mode (AUTH_PROVIDER='none') is not allowed in production."
            raise ValueError(error_msg)
        return Identity(user_id=DEFAULT_USER_ID, role=Role.ADMIN)

    if settings.AUTH_PROVIDER == "jwt":
        token = _extract_token_from_request(request)
        if not token:
            logger.warning("Missing Authorization header and no access_token cookie")
            raise MissingTokenError
        return _identity_from_token(token)

    logger.error(f"Unknown auth provider: {settings.AUTH_PROVIDER}")
    raise UnknownAuthProviderError(settings.AUTH_PROVIDER)
