"""
Role classification and capability resolution.

RoleResolver is the one place that answers "is this role administrative?"
and "does this role see money?". Callers never compare role names themselves.
"""
import enum
from typing import Iterable, Optional, Union

from erp_access.core.config import AccessConfig, normalize_role_name
from erp_access.core.errors import AuthorizationError, ValidationError
from erp_access.features.permissions.catalog import (
    CapabilityLike,
    PermissionCatalog,
    default_catalog,
    matches,
    to_capability,
)
from erp_access.features.permissions.schemas import AuthContext, Capability, RoleInfo
from erp_access.utils import get_logger


log = get_logger(__name__)


class RoleTier(str, enum.Enum):
    ADMINISTRATIVE = "administrative"
    STANDARD = "standard"


# Anything exposing .name and .level: RoleInfo, the Role ORM model, a plain name
RoleLike = Union[RoleInfo, str, None, object]


def _role_name(role: RoleLike) -> Optional[str]:
    if role is None:
        return None
    if isinstance(role, str):
        return role
    return getattr(role, "name", None)


def _role_level(role: RoleLike) -> int:
    if role is None or isinstance(role, str):
        return 0
    level = getattr(role, "level", 0)
    if level is None:
        return 0
    if isinstance(level, bool) or not isinstance(level, int):
        raise ValidationError(f"Role level must be an integer, got {level!r}")
    return level


class RoleResolver:
    """
    Classifies roles and answers capability questions.

    Args:
        config: Canonical admin/financial configuration
        catalog: Capability universe (administrative roles hold all of it)
    """

    def __init__(self, config: AccessConfig, catalog: Optional[PermissionCatalog] = None):
        self.config = config
        self.catalog = catalog or default_catalog()

    def classify(self, role: RoleLike) -> RoleTier:
        """
        ADMINISTRATIVE if the normalized name is in the configured admin set
        or the level meets the configured threshold; STANDARD otherwise,
        including when the role is missing.
        """
        if role is None:
            return RoleTier.STANDARD
        if normalize_role_name(_role_name(role)) in self.config.admin_role_names:
            return RoleTier.ADMINISTRATIVE
        if _role_level(role) >= self.config.admin_role_level:
            return RoleTier.ADMINISTRATIVE
        return RoleTier.STANDARD

    def is_administrative(self, role: RoleLike) -> bool:
        return self.classify(role) is RoleTier.ADMINISTRATIVE

    def capabilities(self, role: RoleLike, grants: Iterable[CapabilityLike] = ()) -> frozenset[Capability]:
        """
        Effective capability set.

        Administrative roles get the whole catalog, computed here rather than
        stored. Standard roles get the union of their explicit grants, with
        wildcard grants expanded against the catalog.
        """
        if self.is_administrative(role):
            return self.catalog.all()
        effective: set[Capability] = set()
        for grant in grants:
            effective |= self.catalog.expand(to_capability(grant))
        return frozenset(effective)

    def can(self, context: Optional[AuthContext], resource: str, action: str) -> bool:
        """
        Explicit action check, e.g. can(ctx, "tasks", "read").

        Unknown capabilities are denied for everyone, administrators included.
        """
        if context is None or not context.user_id or not context.organization_id:
            log.debug("Permission check without a complete context denied")
            return False
        if not self.catalog.exists(resource, action):
            log.debug(f"Permission check for unknown capability {resource}:{action} denied")
            return False

        requested = to_capability((resource, action))
        if self.is_administrative(context.role):
            return True

        allowed = any(matches(grant, requested) for grant in context.granted_capabilities)
        if not allowed:
            log.debug(
                f"User {context.user_id} denied {requested.code} in org {context.organization_id}"
            )
        return allowed

    def require(self, context: Optional[AuthContext], resource: str, action: str) -> None:
        """Raise AuthorizationError unless can() allows."""
        if not self.can(context, resource, action):
            raise AuthorizationError(f"Capability {resource}:{action} denied")

    def has_financial_access(self, role: RoleLike) -> bool:
        """Membership in the financial-access allowlist. Missing role means no access."""
        name = normalize_role_name(_role_name(role))
        return bool(name) and name in self.config.financial_role_names

    def has_minimum_level(self, role: RoleLike, minimum_level: int) -> bool:
        if role is None:
            return False
        return _role_level(role) >= minimum_level
