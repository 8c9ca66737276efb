"""
Role grant persistence and context loading tests.
"""
import asyncio

import pytest
from sqlalchemy import func, select

from erp_access.core.errors import AuthorizationError, ValidationError
from erp_access.features.permissions.catalog import default_catalog
from erp_access.features.permissions.grants import grant, grant_all, load_grants, revoke, sync_catalog
from erp_access.features.permissions.models import Permission, Role, role_permissions
from erp_access.features.users.dependencies import load_context
from erp_access.features.users.models import User


async def grant_rows(db, role_id):
    result = await db.execute(
        select(role_permissions.c.permission_id).where(role_permissions.c.role_id == role_id)
    )
    return [row.permission_id for row in result]


@pytest.mark.asyncio
class TestCatalogSync:
    """Permission rows mirror the catalog"""

    async def test_sync_is_idempotent(self, db):
        assert await sync_catalog(db) == len(default_catalog())
        assert await sync_catalog(db) == 0
        count = (await db.execute(select(func.count()).select_from(Permission))).scalar_one()
        assert count == len(default_catalog())


@pytest.mark.asyncio
class TestGrant:
    """Single grants"""

    async def test_grant_then_duplicate(self, db, tenant):
        role = await db.get(Role, tenant.staff_role)
        assert await grant(db, role, "tasks", "read") is True
        assert await grant(db, role, "tasks", "read") is False
        assert await load_grants(db, role.id) == frozenset(
            {default_catalog().validate("projects", "read"), default_catalog().validate("tasks", "read")}
        )

    async def test_unknown_capability_rejected(self, db, tenant):
        role = await db.get(Role, tenant.staff_role)
        with pytest.raises(ValidationError):
            await grant(db, role, "spaceships", "launch")
        assert len(await grant_rows(db, role.id)) == 1

    async def test_revoke(self, db, tenant):
        role = await db.get(Role, tenant.staff_role)
        assert await revoke(db, role, "projects", "read") is True
        assert await revoke(db, role, "projects", "read") is False
        assert await load_grants(db, role.id) == frozenset()

    async def test_load_grants_without_role(self, db):
        assert await load_grants(db, None) == frozenset()


@pytest.mark.asyncio
class TestGrantAll:
    """Bulk grant, sequential and concurrent"""

    async def test_grant_all_is_idempotent(self, db, tenant):
        role = await db.get(Role, tenant.staff_role)
        catalog = default_catalog()
        assert await grant_all(db, role) == len(catalog) - 1
        assert await grant_all(db, role) == 0
        rows = await grant_rows(db, role.id)
        assert len(rows) == len(set(rows)) == len(catalog)

    async def test_concurrent_grant_all(self, session_factory, tenant):
        async def run():
            async with session_factory() as session:
                role = await session.get(Role, tenant.guest_role)
                return await grant_all(session, role)

        results = await asyncio.gather(*(run() for _ in range(4)))

        async with session_factory() as session:
            rows = await grant_rows(session, tenant.guest_role)
        assert len(rows) == len(set(rows)) == len(default_catalog())
        assert sum(results) == len(default_catalog())


@pytest.mark.asyncio
class TestLoadContext:
    """AuthContext built fresh from the database"""

    async def test_standard_user(self, db, tenant):
        ctx = await load_context(db, tenant.u3)
        assert ctx.user_id == tenant.u3
        assert ctx.organization_id == tenant.o1
        assert ctx.role.name == "Staff"
        assert {c.code for c in ctx.granted_capabilities} == {"projects:read"}

    async def test_grants_apply_immediately(self, db, tenant):
        role = await db.get(Role, tenant.staff_role)
        await grant(db, role, "tasks", "read")
        ctx = await load_context(db, tenant.u3)
        assert {c.code for c in ctx.granted_capabilities} == {"projects:read", "tasks:read"}

    async def test_unknown_or_missing_user(self, db, tenant):
        with pytest.raises(AuthorizationError):
            await load_context(db, "nobody")
        with pytest.raises(AuthorizationError):
            await load_context(db, None)

    async def test_inactive_user(self, db, tenant):
        user = await db.get(User, tenant.u3)
        user.is_active = False
        await db.commit()
        with pytest.raises(AuthorizationError):
            await load_context(db, tenant.u3)

    async def test_cross_tenant_role_ignored(self, db, session_factory, tenant):
        user = await db.get(User, tenant.u3)
        user.role_id = tenant.other_admin_role
        await db.commit()
        async with session_factory() as fresh:
            ctx = await load_context(fresh, tenant.u3)
        assert ctx.role is None
        assert ctx.granted_capabilities == frozenset()
