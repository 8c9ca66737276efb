"""
Permission catalog: the immutable universe of grantable capabilities.

Also holds the wildcard matching rules shared by grant expansion and
permission checks:
- "projects:*"   every action on projects
- "*:read"       read on every resource
- "*:*"          everything
- "finance.*:*"  every action on every resource in the finance.* family
"""
from functools import lru_cache
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional, Union

from erp_access.core.errors import ValidationError
from erp_access.features.permissions.schemas import Capability


WILDCARD = "*"

DEFAULT_RESOURCES = (
    # Core
    "users",
    "roles",
    "organizations",
    "settings",

    # Projects
    "projects",
    "tasks",
    "sprints",
    "time-tracking",
    "documents",

    # Finance
    "finance.accounts",
    "finance.journal-entries",
    "finance.invoices",
    "finance.expenses",
    "finance.budgets",
    "finance.reports",

    # Operations
    "crm",
    "inventory",
    "procurement",

    # Analytics
    "analytics",
    "reports",

    # System
    "audit-logs",
    "notifications",
    "webhooks",
)

DEFAULT_ACTIONS = (
    "read",
    "create",
    "update",
    "delete",
    "export",
    "approve",
    "manage",
    "admin",
)

CapabilityLike = Union[Capability, tuple[str, str], str]


def to_capability(value: CapabilityLike) -> Capability:
    """Coerce a Capability, a (resource, action) tuple, or a 'resource:action' string."""
    if isinstance(value, Capability):
        return value
    if isinstance(value, str):
        return Capability.parse(value)
    resource, action = value
    return Capability(resource=resource, action=action)


def _resource_matches(pattern: str, resource: str) -> bool:
    if pattern == WILDCARD or pattern == resource:
        return True
    if pattern.endswith(".*"):
        return resource.startswith(pattern[:-1])
    return False


def matches(grant: Capability, requested: Capability) -> bool:
    """True if a (possibly wildcard) grant covers the requested capability."""
    action_ok = grant.action == WILDCARD or grant.action == requested.action
    return action_ok and _resource_matches(grant.resource, requested.resource)


class PermissionCatalog:
    """
    Immutable registry of every (resource, action) pair the system knows.

    Usage:
        catalog = default_catalog()
        catalog.exists("tasks", "read")       # True
        catalog.validate("tasks", "teleport") # raises ValidationError
    """

    def __init__(
        self,
        capabilities: Iterable[CapabilityLike],
        descriptions: Optional[Mapping[Capability, str]] = None,
    ):
        caps = frozenset(to_capability(c) for c in capabilities)
        for cap in caps:
            if WILDCARD in cap.action or cap.resource == WILDCARD or cap.resource.endswith(".*"):
                raise ValidationError(f"Catalog entries cannot be wildcards: {cap.code}")
        self._capabilities = caps
        self._descriptions = MappingProxyType(dict(descriptions or {}))

    @classmethod
    def from_matrix(cls, resources: Iterable[str], actions: Iterable[str]) -> "PermissionCatalog":
        actions = tuple(actions)
        return cls(Capability(resource=r, action=a) for r in resources for a in actions)

    def exists(self, resource: str, action: str) -> bool:
        try:
            return to_capability((resource, action)) in self._capabilities
        except ValueError:
            return False

    def all(self) -> frozenset[Capability]:
        return self._capabilities

    def describe(self, resource: str, action: str) -> str:
        """Human-readable identity of a catalog entry."""
        cap = self.validate(resource, action)
        return self._descriptions.get(cap, f"{cap.action} access to {cap.resource}")

    def validate(self, resource: str, action: str) -> Capability:
        """Return the catalog Capability or raise ValidationError."""
        try:
            cap = to_capability((resource, action))
        except ValueError as e:
            raise ValidationError(f"Malformed capability {resource!r}:{action!r}: {e}")
        if cap not in self._capabilities:
            raise ValidationError(f"Unknown capability {cap.code}")
        return cap

    def expand(self, pattern: CapabilityLike) -> frozenset[Capability]:
        """All catalog entries a (possibly wildcard) pattern covers."""
        grant = to_capability(pattern)
        return frozenset(c for c in self._capabilities if matches(grant, c))

    def __contains__(self, item: object) -> bool:
        return isinstance(item, Capability) and item in self._capabilities

    def __iter__(self) -> Iterator[Capability]:
        return iter(sorted(self._capabilities, key=lambda c: (c.resource, c.action)))

    def __len__(self) -> int:
        return len(self._capabilities)

    def __repr__(self) -> str:
        return f"<PermissionCatalog(size={len(self)})>"


@lru_cache(maxsize=1)
def default_catalog() -> PermissionCatalog:
    return PermissionCatalog.from_matrix(DEFAULT_RESOURCES, DEFAULT_ACTIONS)
