"""Authentication module exports."""

from src.auth.config import DEFAULT_USER_ID, Identity, Role
from src.auth.context import AuthContext, CurrentAuth, UserContext


__all__ = [
    "DEFAULT_USER_ID",
    "AuthContext",
    "CurrentAuth",
    "Identity",
    "Role",
    "UserContext",
]
