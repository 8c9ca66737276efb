"""
FastAPI dependencies that turn an authenticated request into an AuthContext.

Credential verification happens upstream. The authentication layer hands us
the user id, either on request.state.user_id (middleware) or in the X-User-Id
header set by a trusted gateway. Everything else is read fresh from the
database on every request, so role reassignments and grant changes apply
immediately.
"""
from typing import Annotated, Optional
from fastapi import Depends, Header, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_access.core.database.engine import get_db
from erp_access.core.errors import AuthorizationError
from erp_access.features.permissions.grants import load_grants
from erp_access.features.permissions.schemas import AuthContext, RoleInfo
from erp_access.features.users.models import User
from erp_access.utils import get_logger


log = get_logger(__name__)


async def load_context(db: AsyncSession, user_id: Optional[str]) -> AuthContext:
    """
    Build the AuthContext for a user.

    Raises:
        AuthorizationError: unknown or inactive user
    """
    if not user_id:
        raise AuthorizationError("No authenticated user")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise AuthorizationError(f"Unknown user {user_id}")
    if not user.is_active:
        raise AuthorizationError(f"User {user_id} is deactivated")

    role = user.role
    if role is not None and role.organization_id != user.organization_id:
        # Roles are organization-scoped; a cross-tenant link is treated as no role
        log.error(
            f"User {user.id} in org {user.organization_id} linked to role {role.id} "
            f"of org {role.organization_id}; ignoring role"
        )
        role = None

    return AuthContext(
        user_id=user.id,
        organization_id=user.organization_id,
        role=RoleInfo.model_validate(role) if role is not None else None,
        granted_capabilities=await load_grants(db, role.id if role is not None else None),
    )


def get_current_user_id(
    request: Request,
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> str:
    """Authenticated user id from the upstream authentication layer."""
    user_id = getattr(request.state, "user_id", None) or x_user_id
    if not user_id:
        raise AuthorizationError("Authentication required")
    return user_id


async def get_auth_context(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AuthContext:
    """
    Usage:
        @router.get("/things")
        async def list_things(ctx: AuthContext = Depends(get_auth_context)):
            ...
    """
    return await load_context(db, user_id)
