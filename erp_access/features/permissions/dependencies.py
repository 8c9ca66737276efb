"""
Permission checking dependencies for route protection.

Implements:
- Process-wide AccessConfig / RoleResolver (validated once at startup)
- require_permission / require_any_permission guards
- require_administrative / require_financial_access guards
"""
from functools import lru_cache
from typing import Annotated, List
from fastapi import Depends

from erp_access.core.config import AccessConfig, load_access_config
from erp_access.core.errors import AuthorizationError
from erp_access.features.permissions.catalog import default_catalog
from erp_access.features.permissions.roles import RoleResolver
from erp_access.features.permissions.schemas import AuthContext
from erp_access.features.users.dependencies import get_auth_context
from erp_access.utils import get_logger


log = get_logger(__name__)


@lru_cache(maxsize=1)
def get_access_config() -> AccessConfig:
    """Loaded once; raises ConfigurationError when the environment is invalid."""
    return load_access_config()


def get_role_resolver() -> RoleResolver:
    return RoleResolver(get_access_config(), default_catalog())


def require_permission(resource: str, action: str):
    """
    Dependency requiring a specific capability.

    Usage:
        @router.get("/tasks")
        async def list_tasks(
            ctx: AuthContext = Depends(require_permission("tasks", "read"))
        ):
            ...

    Raises:
        AuthorizationError: translated to a generic 403 by the app
    """
    async def permission_dependency(
        ctx: Annotated[AuthContext, Depends(get_auth_context)],
        resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
    ) -> AuthContext:
        resolver.require(ctx, resource, action)
        return ctx

    return permission_dependency


def require_any_permission(permissions: List[tuple[str, str]]):
    """
    Dependency requiring ANY of the specified capabilities.

    Usage:
        @router.get("/reports")
        async def get_reports(
            ctx: AuthContext = Depends(require_any_permission([("reports", "read"), ("analytics", "read")]))
        ):
            ...
    """
    async def permission_dependency(
        ctx: Annotated[AuthContext, Depends(get_auth_context)],
        resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
    ) -> AuthContext:
        for resource, action in permissions:
            if resolver.can(ctx, resource, action):
                return ctx
        raise AuthorizationError(f"None of {permissions} granted to user {ctx.user_id}")

    return permission_dependency


async def require_administrative(
    ctx: Annotated[AuthContext, Depends(get_auth_context)],
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
) -> AuthContext:
    if not resolver.is_administrative(ctx.role):
        raise AuthorizationError(f"User {ctx.user_id} is not administrative")
    return ctx


async def require_financial_access(
    ctx: Annotated[AuthContext, Depends(get_auth_context)],
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
) -> AuthContext:
    if not resolver.has_financial_access(ctx.role):
        raise AuthorizationError(f"User {ctx.user_id} has no financial access")
    return ctx
