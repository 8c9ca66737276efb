"""
Organization scope guard: the single choke point for tenancy isolation.

The organization id always comes from the authenticated context. Client input
may repeat it but never override it.
"""
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import Select

from erp_access.core.errors import AuthorizationError
from erp_access.features.permissions.schemas import AuthContext
from erp_access.utils import get_logger


log = get_logger(__name__)

ORGANIZATION_KEYS = ("organization_id", "organizationId")


def _organization_of(entity: Any) -> Optional[str]:
    if isinstance(entity, Mapping):
        for key in ORGANIZATION_KEYS:
            if key in entity:
                return entity[key]
        return None
    return getattr(entity, "organization_id", None)


class OrganizationScopeGuard:
    """
    Binds data access to the context's organization.

    Usage:
        guard = OrganizationScopeGuard(ctx)
        filters = guard.scope({"status": "active"})
        stmt = guard.apply(select(Project), Project)
        rows = guard.enforce(rows)

    Raises:
        AuthorizationError: on construction if the context has no organization
    """

    def __init__(self, context: Optional[AuthContext]):
        if context is None or not context.organization_id:
            raise AuthorizationError("Tenant context missing")
        self.context = context
        self.organization_id = context.organization_id

    def scope(self, filters: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        """
        Return a copy of the request filters with organization_id bound.

        A matching organization id in the input is accepted; a conflicting one
        raises AuthorizationError.
        """
        scoped = dict(filters or {})
        for key in ORGANIZATION_KEYS:
            if key in scoped:
                requested = scoped.pop(key)
                if requested is not None and requested != self.organization_id:
                    log.info(
                        f"User {self.context.user_id} in org {self.organization_id} "
                        f"requested org {requested}"
                    )
                    raise AuthorizationError("Organization mismatch")
        scoped["organization_id"] = self.organization_id
        return scoped

    def apply(self, statement: Select, model) -> Select:
        """Add the mandatory organization filter to a SQLAlchemy select."""
        return statement.where(model.organization_id == self.organization_id)

    def check_header(self, value: Optional[str]) -> None:
        """An X-Org-Id / X-Tenant-Id header, when sent, must match the context."""
        if value and value != self.organization_id:
            raise AuthorizationError("Tenant mismatch")

    def ensure_same_organization(self, entity: Any) -> None:
        """Reject an org-scoped entity (role, user, record) from another tenant."""
        if _organization_of(entity) != self.organization_id:
            raise AuthorizationError("Organization mismatch")

    def enforce(self, records: Iterable[Any]) -> list[Any]:
        """
        Final isolation pass over a result set.

        Anything from another organization is dropped and logged; reaching
        that branch means an upstream filter is broken.
        """
        kept = []
        for record in records:
            if _organization_of(record) == self.organization_id:
                kept.append(record)
            else:
                log.error(
                    f"Tenancy violation: record from org {_organization_of(record)} "
                    f"reached user {self.context.user_id} of org {self.organization_id}; dropped"
                )
        return kept
