from typing import Annotated, Any, Callable
from fastapi import Depends

from erp_access.features.permissions.dependencies import get_role_resolver
from erp_access.features.permissions.roles import RoleResolver
from erp_access.features.permissions.schemas import AuthContext
from erp_access.features.redaction.filter import FieldRedactionFilter
from erp_access.features.users.dependencies import get_auth_context


Redactor = Callable[[Any], Any]


def get_redactor(
    ctx: Annotated[AuthContext, Depends(get_auth_context)],
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
) -> Redactor:
    """
    Redactor bound to the current user's role. Run it last, on the fully
    assembled response body.
    """
    redaction = FieldRedactionFilter(resolver)
    return lambda payload: redaction.redact_for(ctx, payload)
