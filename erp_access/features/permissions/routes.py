"""
Permission API routes.

Provides capability checks for the current user and the grant-all repair
operation for administrators.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_access.core.database.engine import get_db
from erp_access.features.organizations.dependencies import get_scope_guard
from erp_access.features.organizations.scope import OrganizationScopeGuard
from erp_access.features.permissions.catalog import default_catalog
from erp_access.features.permissions.dependencies import get_role_resolver, require_administrative
from erp_access.features.permissions.grants import grant_all
from erp_access.features.permissions.models import Role
from erp_access.features.permissions.roles import RoleResolver
from erp_access.features.permissions.schemas import (
    AuthContext,
    GrantAllResponse,
    PermissionCheckResponse,
)
from erp_access.features.users.dependencies import get_auth_context
from erp_access.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


@router.get("/check", response_model=PermissionCheckResponse)
async def check_permission(
    resource: str,
    action: str,
    ctx: Annotated[AuthContext, Depends(get_auth_context)],
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
):
    """Whether the current user may perform action on resource."""
    return PermissionCheckResponse(
        resource=resource,
        action=action,
        allowed=resolver.can(ctx, resource, action),
    )


@router.get("/me", response_model=List[str])
async def my_capabilities(
    ctx: Annotated[AuthContext, Depends(get_auth_context)],
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
):
    """Effective capabilities of the current user, as 'resource:action' codes."""
    caps = resolver.capabilities(ctx.role, ctx.granted_capabilities)
    return sorted(c.code for c in caps)


@router.post("/roles/{role_id}/grant-all", response_model=GrantAllResponse)
async def grant_all_to_role(
    role_id: str,
    ctx: Annotated[AuthContext, Depends(require_administrative)],
    guard: Annotated[OrganizationScopeGuard, Depends(get_scope_guard)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Link every catalog capability to a role of the caller's organization (admin only)."""
    result = await db.execute(guard.apply(select(Role).where(Role.id == role_id), Role))
    role = result.scalar_one_or_none()

    if role is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")

    guard.ensure_same_organization(role)
    catalog = default_catalog()
    inserted = await grant_all(db, role, catalog)
    log.info(f"User {ctx.user_id} ran grant-all on role {role.id}")

    return GrantAllResponse(role_id=role.id, inserted=inserted, total=len(catalog))
