"""
RoleGrant persistence: catalog sync, single grants, and bulk grant-all.

Every write is insert-if-absent (ON CONFLICT DO NOTHING), so concurrent
bootstrap or repair runs never create duplicate rows and never fail on them.
"""
from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from erp_access.core.database.base import generate_ulid
from erp_access.core.errors import ConfigurationError, ValidationError
from erp_access.features.permissions.catalog import PermissionCatalog, default_catalog
from erp_access.features.permissions.models import Permission, Role, role_permissions
from erp_access.features.permissions.schemas import Capability
from erp_access.utils import get_logger


log = get_logger(__name__)


def insert_if_absent(db: AsyncSession, table):
    """Dialect-specific INSERT ... ON CONFLICT DO NOTHING."""
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        raise ConfigurationError(f"Idempotent grants are not supported on dialect {dialect!r}")
    return insert(table).on_conflict_do_nothing()


def _inserted(result) -> int:
    return max(result.rowcount or 0, 0)


async def sync_catalog(db: AsyncSession, catalog: PermissionCatalog | None = None) -> int:
    """
    Ensure a permissions row exists for every catalog entry.

    Returns:
        Number of rows created by this call
    """
    catalog = catalog or default_catalog()
    rows = [
        {
            "id": generate_ulid(),
            "resource": cap.resource,
            "action": cap.action,
            "description": catalog.describe(cap.resource, cap.action),
        }
        for cap in catalog
    ]
    if not rows:
        return 0

    result = await db.execute(insert_if_absent(db, Permission.__table__).values(rows))
    await db.commit()

    created = _inserted(result)
    if created:
        log.info(f"Catalog sync created {created} permissions")
    return created


async def _permission_ids(db: AsyncSession, capabilities: frozenset[Capability]) -> list[str]:
    result = await db.execute(select(Permission.id, Permission.resource, Permission.action))
    return [
        row.id
        for row in result
        if Capability(resource=row.resource, action=row.action) in capabilities
    ]


async def grant(
    db: AsyncSession,
    role: Role,
    resource: str,
    action: str,
    catalog: PermissionCatalog | None = None,
) -> bool:
    """
    Grant one capability to a role.

    Raises:
        ValidationError: if the capability is not in the catalog

    Returns:
        True if a new grant row was written, False if it already existed
    """
    catalog = catalog or default_catalog()
    cap = catalog.validate(resource, action)

    await db.execute(
        insert_if_absent(db, Permission.__table__).values(
            id=generate_ulid(),
            resource=cap.resource,
            action=cap.action,
            description=catalog.describe(cap.resource, cap.action),
        )
    )
    permission_id = (
        await db.execute(
            select(Permission.id).where(
                and_(Permission.resource == cap.resource, Permission.action == cap.action)
            )
        )
    ).scalar_one()

    result = await db.execute(
        insert_if_absent(db, role_permissions).values(role_id=role.id, permission_id=permission_id)
    )
    await db.commit()

    created = _inserted(result) > 0
    log.info(f"Grant {cap.code} to role {role.id}: {'created' if created else 'already present'}")
    return created


async def grant_all(db: AsyncSession, role: Role, catalog: PermissionCatalog | None = None) -> int:
    """
    Link every catalog capability to a role.

    Used by bootstrap and repair flows. Idempotent and safe to run
    concurrently: rows are written with a single insert-if-absent statement.

    Returns:
        Number of grant rows created by this call
    """
    catalog = catalog or default_catalog()
    await sync_catalog(db, catalog)

    permission_ids = await _permission_ids(db, catalog.all())
    if not permission_ids:
        log.warning(f"No catalog permissions found while granting all to role {role.id}")
        return 0

    result = await db.execute(
        insert_if_absent(db, role_permissions).values(
            [{"role_id": role.id, "permission_id": pid} for pid in permission_ids]
        )
    )
    await db.commit()

    created = _inserted(result)
    log.info(f"Grant-all on role {role.id}: {created} new of {len(permission_ids)} permissions")
    return created


async def revoke(db: AsyncSession, role: Role, resource: str, action: str) -> bool:
    """Remove a grant. Revoking an absent grant is a no-op."""
    stmt = delete(role_permissions).where(
        and_(
            role_permissions.c.role_id == role.id,
            role_permissions.c.permission_id.in_(
                select(Permission.id).where(
                    and_(Permission.resource == resource, Permission.action == action)
                )
            ),
        )
    )
    result = await db.execute(stmt)
    await db.commit()
    return _inserted(result) > 0


async def load_grants(db: AsyncSession, role_id: str | None) -> frozenset[Capability]:
    """Explicit grants of a role, read fresh from the RoleGrant relation."""
    if not role_id:
        return frozenset()
    stmt = (
        select(Permission.resource, Permission.action)
        .join(role_permissions, role_permissions.c.permission_id == Permission.id)
        .where(role_permissions.c.role_id == role_id)
    )
    result = await db.execute(stmt)
    try:
        return frozenset(Capability(resource=r, action=a) for r, a in result)
    except ValueError as e:
        raise ValidationError(f"Malformed grant on role {role_id}: {e}")
