"""
Organization-related dependency injection functions.
"""
from typing import Annotated, Optional
from fastapi import Depends, Header

from erp_access.features.organizations.scope import OrganizationScopeGuard
from erp_access.features.permissions.schemas import AuthContext
from erp_access.features.users.dependencies import get_auth_context


async def get_scope_guard(
    ctx: Annotated[AuthContext, Depends(get_auth_context)],
    x_org_id: Annotated[Optional[str], Header()] = None,
    x_tenant_id: Annotated[Optional[str], Header()] = None,
) -> OrganizationScopeGuard:
    """
    Scope guard for the current request.

    Raises:
        AuthorizationError: missing tenant context, or a tenant header that
            names a different organization
    """
    guard = OrganizationScopeGuard(ctx)
    guard.check_header(x_org_id)
    guard.check_header(x_tenant_id)
    return guard
