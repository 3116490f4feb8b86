"""AuthContext and FastAPI dependencies for centralized auth/ownership.

AuthContext pairs the authenticated user with an AsyncSession and exposes
small role and ownership helpers. Routers pass `CurrentAuth` into services
instead of separate user_id/session pairs.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Annotated
from uuid import UUID

from fastapi import Depends

from src.auth.config import STAFF_ROLES, Identity, Role
from src.auth.dependencies import _get_identity
from src.database.session import DbSession
from src.exceptions import AuthorizationError


if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class UserContext:
    """Request-scoped user context with role helpers."""

    def __init__(self, user_id: UUID, role: Role, session: AsyncSession) -> None:
        self.user_id = user_id
        self.role = role
        self.session = session

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def require_role(self, *roles: Role) -> None:
        """Raise AuthorizationError unless the caller holds one of `roles`."""
        if self.role not in roles:
            allowed = ", ".join(sorted(r.value for r in roles))
            msg = f"This action requires one of the roles: {allowed}"
            raise AuthorizationError(msg)

    def require_staff(self) -> None:
        self.require_role(*STAFF_ROLES)

    def require_owner_or_staff(self, owner_id: UUID, resource_name: str = "resource") -> None:
        if owner_id != self.user_id and not self.is_staff:
            msg = f"You do not have access to this {resource_name}"
            raise AuthorizationError(msg)


AuthContext = UserContext


async def get_auth_context(
    identity: Annotated[Identity, Depends(_get_identity)],
    session: DbSession,
) -> AuthContext:
    """Build an AuthContext for the current request."""
    return AuthContext(user_id=identity.user_id, role=identity.role, session=session)


CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]
