"""
Record visibility for administrative and standard users.

Administrative: every non-deleted record in the user's organization.
Standard: the same, narrowed to records where the user is the primary owner,
a co-owner, a member, or the assignee of at least one task. The four relations
are a union; none of them can take visibility away.

The policy only produces predicates (see erp_access.core.predicates), so the
same decision runs as a SQL filter or over records already in memory.
Nothing is cached: every call reads the context it is given.
"""
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sqlalchemy import Select, select

from erp_access.core.errors import AuthorizationError
from erp_access.core.predicates import (
    Contains,
    Eq,
    Exists,
    IsNull,
    Never,
    Predicate,
    all_of,
    any_of,
    describe,
    evaluate,
    to_sqlalchemy,
)
from erp_access.features.organizations.scope import OrganizationScopeGuard
from erp_access.features.permissions.roles import RoleResolver
from erp_access.features.permissions.schemas import AuthContext
from erp_access.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class VisibilityShape:
    """Field names a visibility-relevant record exposes."""
    organization: str = "organization_id"
    deleted: str = "deleted_at"
    owner: str = "owner_id"
    co_owners: str = "co_owner_ids"
    members: str = "member_ids"
    tasks: str = "tasks"
    assignee: str = "assignee_id"


# Plain records handed in by collaborators: {"co_owner_ids": [...], "member_ids": [...]}
RECORD_SHAPE = VisibilityShape()

# The Project ORM model exposes relationships instead of id lists
PROJECT_SHAPE = VisibilityShape(co_owners="co_owners", members="members")


class VisibilityPolicy:
    """
    Computes which records of one shape a user may see.

    Usage:
        policy = VisibilityPolicy(resolver, PROJECT_SHAPE)
        stmt = policy.select_visible(ctx, Project)
        rows = (await db.execute(stmt)).scalars().all()
    """

    def __init__(self, resolver: RoleResolver, shape: VisibilityShape = RECORD_SHAPE):
        self.resolver = resolver
        self.shape = shape

    def predicate_for(self, context: Optional[AuthContext]) -> Predicate:
        """
        Raises:
            AuthorizationError: context or organization missing
        """
        if context is None or not context.organization_id:
            raise AuthorizationError("Visibility requested without tenant context")

        shape = self.shape
        scoped = (
            Eq(shape.organization, context.organization_id),
            IsNull(shape.deleted),
        )

        if self.resolver.is_administrative(context.role):
            return all_of(*scoped)

        if not context.user_id:
            return Never()

        uid = context.user_id
        return all_of(
            *scoped,
            any_of(
                Eq(shape.owner, uid),
                Contains(shape.co_owners, uid),
                Contains(shape.members, uid),
                Exists(shape.tasks, Eq(shape.assignee, uid)),
            ),
        )

    def filter_records(self, context: Optional[AuthContext], records: Iterable[Any]) -> list[Any]:
        """In-memory filtering, followed by the tenancy guard's final pass."""
        predicate = self.predicate_for(context)
        guard = OrganizationScopeGuard(context)
        return guard.enforce(r for r in records if evaluate(predicate, r))

    def can_view(self, context: Optional[AuthContext], record: Any) -> bool:
        return bool(self.filter_records(context, [record]))

    def select_visible(self, context: Optional[AuthContext], model, statement: Optional[Select] = None) -> Select:
        """
        SQL form: the organization filter is applied by the scope guard
        independently of the predicate, so a predicate bug cannot cross tenants.
        """
        predicate = self.predicate_for(context)
        guard = OrganizationScopeGuard(context)
        log.debug(f"Visibility for user {context.user_id}: {describe(predicate)}")
        statement = statement if statement is not None else select(model)
        return guard.apply(statement, model).where(to_sqlalchemy(predicate, model))


def visible_projects(context: Optional[AuthContext], resolver: RoleResolver) -> Predicate:
    """Predicate over Project rows visible to the context's user."""
    return VisibilityPolicy(resolver, PROJECT_SHAPE).predicate_for(context)
