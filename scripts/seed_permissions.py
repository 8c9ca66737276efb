"""
Seed script to populate the permission catalog and default roles.

Run after database initialization to create:
- Every catalog permission
- The default roles in each organization
- Initial role grants (administrative roles hold the full catalog implicitly)

Safe to re-run, and safe to run twice at the same time: every write is
insert-if-absent.

Usage:
    python -m scripts.seed_permissions
"""
import asyncio
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from erp_access.core.database.base import generate_ulid
from erp_access.core.database.engine import get_db, init_db
from erp_access.features.organizations.models import Organization
from erp_access.features.permissions.catalog import default_catalog
from erp_access.features.permissions.dependencies import get_role_resolver
from erp_access.features.permissions.grants import grant, insert_if_absent, sync_catalog
from erp_access.features.permissions.models import Role
from erp_access.utils import get_logger


log = get_logger("erp_access.scripts.seed_permissions")


DEFAULT_ROLES = {
    "Superadmin": {
        "description": "Full system access with no restrictions",
        "level": 10,
        "permissions": None,
    },
    "CEO": {
        "description": "Chief Executive Officer - Full business access",
        "level": 9,
        "permissions": None,
    },
    "CFO": {
        "description": "Chief Financial Officer - Full financial access",
        "level": 8,
        "permissions": [
            "users:read",
            "projects:read",
            "finance.*:*",
            "analytics:read", "reports:read",
            "audit-logs:read",
        ],
    },
    "Contador Senior": {
        "description": "Senior Accountant - Full accounting access with approval rights",
        "level": 7,
        "permissions": [
            "finance.*:*",
            "analytics:read", "reports:read",
        ],
    },
    "Gerente Operaciones": {
        "description": "Operations Manager - Manages operations and projects",
        "level": 7,
        "permissions": None,
    },
    "Supervisor": {
        "description": "Supervisor - Oversees teams and projects",
        "level": 6,
        "permissions": [
            "users:read",
            "projects:read", "projects:update",
            "tasks:*", "sprints:read",
            "time-tracking:read", "time-tracking:approve",
            "analytics:read",
        ],
    },
    "Project Manager": {
        "description": "Project Manager - Own projects only",
        "level": 5,
        "permissions": [
            "users:read",
            "projects:read", "projects:update",
            "tasks:*",
            "sprints:*",
            "time-tracking:read",
            "documents:*",
        ],
    },
    "Developer": {
        "description": "Developer - Own tasks only",
        "level": 3,
        "permissions": [
            "users:read",
            "projects:read",
            "tasks:read", "tasks:update",
            "time-tracking:create", "time-tracking:read",
            "documents:read",
        ],
    },
    "Operario": {
        "description": "Operator - Assigned tasks only",
        "level": 3,
        "permissions": [
            "users:read",
            "projects:read",
            "tasks:read", "tasks:update",
            "time-tracking:create", "time-tracking:read",
        ],
    },
}


async def seed_roles(db: AsyncSession, organization: Organization):
    """
    Create the default roles of one organization and assign their grants.

    Args:
        db: Database session
        organization: Organization to seed
    """
    catalog = default_catalog()
    resolver = get_role_resolver()
    log.info(f"Seeding roles for organization '{organization.name}'...")

    for role_name, role_config in DEFAULT_ROLES.items():
        result = await db.execute(
            insert_if_absent(db, Role.__table__).values(
                id=generate_ulid(),
                organization_id=organization.id,
                name=role_name,
                level=role_config["level"],
                description=role_config["description"],
            )
        )
        await db.commit()

        if result.rowcount and result.rowcount > 0:
            log.info(f"Created role '{role_name}'")
        else:
            log.debug(f"Role '{role_name}' already exists, ensuring grants")

        # The winning insert may belong to a concurrent run
        stmt = select(Role).where(
            and_(Role.organization_id == organization.id, Role.name == role_name)
        )
        role = (await db.execute(stmt)).scalars().one()

        if resolver.is_administrative(role):
            # Administrative roles hold the full catalog implicitly; no grant rows
            log.info(f"Role '{role_name}' is administrative, skipping explicit grants")
            continue

        created = 0
        for pattern in role_config["permissions"] or ():
            expanded = catalog.expand(pattern)
            if not expanded:
                log.warning(f"Pattern '{pattern}' matches no catalog permission for role '{role_name}'")
            for cap in expanded:
                created += await grant(db, role, cap.resource, cap.action, catalog)
        log.info(f"Role '{role_name}' granted {created} new permissions")


async def main():
    """Seed catalog, then roles for every organization."""
    log.info("Starting permission seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            created = await sync_catalog(db, default_catalog())
            log.info(f"Catalog synced ({created} new permissions)")

            result = await db.execute(select(Organization))
            organizations = result.scalars().all()
            if not organizations:
                log.warning("No organizations found; only the catalog was seeded")

            for organization in organizations:
                await seed_roles(db, organization)

            log.info("Permission seeding completed successfully!")

        except Exception as e:
            log.error(f"Error seeding permissions: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
