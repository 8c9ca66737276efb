"""
Pytest fixtures for the access engine.

Database tests run against a fresh SQLite file per test. The `tenant` fixture
seeds two organizations:

O1 roles: Superadmin (10), CFO (9), Staff (1), Guest (1, no grants)
O1 users: admin (Superadmin), u1 (CFO), u2, u3, u4 (Staff), guest (Guest)
O1 projects:
    P1  owner u1, budget 1000
    P2  owner u2, task assigned to u1
    P3  owner u2, members [u3], co-owners [u4]
    P4  no owner, no relations
    P5  owner u1, soft-deleted
O2 roles: Admin; users: other (Admin)
O2 projects:
    PX  owner other, co-owners [u1]   (cross-tenant link, must stay invisible)
"""
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from erp_access.core.config import AccessConfig
from erp_access.core.database.engine import build_engine, init_db
from erp_access.features.organizations.models import Organization
from erp_access.features.permissions.catalog import default_catalog
from erp_access.features.permissions.grants import grant
from erp_access.features.permissions.models import Role
from erp_access.features.permissions.roles import RoleResolver
from erp_access.features.permissions.schemas import AuthContext, Capability, RoleInfo
from erp_access.features.projects.models import Project, Task
from erp_access.features.users.models import User


@pytest.fixture
def access_config():
    return AccessConfig.build()


@pytest.fixture
def resolver(access_config):
    return RoleResolver(access_config, default_catalog())


@pytest.fixture
def make_context():
    """Factory for AuthContext objects."""
    def _make(
        user_id="u1",
        organization_id="o1",
        role_name="Staff",
        level=1,
        grants=(),
    ) -> AuthContext:
        role = RoleInfo(name=role_name, level=level) if role_name is not None else None
        return AuthContext(
            user_id=user_id,
            organization_id=organization_id,
            role=role,
            granted_capabilities=frozenset(Capability.parse(g) for g in grants),
        )
    return _make


# =============================================================================
# Database fixtures
# =============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'access.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def tenant(session_factory):
    """Seed the two-organization scenario described in the module docstring."""
    async with session_factory() as s:
        o1 = Organization(name="Sigma")
        o2 = Organization(name="Other Co")
        s.add_all([o1, o2])
        await s.flush()

        superadmin = Role(organization_id=o1.id, name="Superadmin", level=10)
        cfo = Role(organization_id=o1.id, name="CFO", level=9)
        staff = Role(organization_id=o1.id, name="Staff", level=1)
        guest = Role(organization_id=o1.id, name="Guest", level=1)
        other_admin = Role(organization_id=o2.id, name="Admin", level=10)
        s.add_all([superadmin, cfo, staff, guest, other_admin])
        await s.flush()

        def user(org, role, handle):
            return User(organization_id=org.id, role_id=role.id, email=f"{handle}@example.com", name=handle)

        admin = user(o1, superadmin, "admin")
        u1 = user(o1, cfo, "u1")
        u2 = user(o1, staff, "u2")
        u3 = user(o1, staff, "u3")
        u4 = user(o1, staff, "u4")
        guest_user = user(o1, guest, "guest")
        other = user(o2, other_admin, "other")
        s.add_all([admin, u1, u2, u3, u4, guest_user, other])
        await s.flush()

        p1 = Project(organization_id=o1.id, name="P1", owner_id=u1.id, budget=Decimal("1000.00"))
        p2 = Project(
            organization_id=o1.id,
            name="P2",
            owner_id=u2.id,
            budget=Decimal("250.00"),
            tasks=[Task(organization_id=o1.id, title="Install", assignee_id=u1.id)],
        )
        p3 = Project(organization_id=o1.id, name="P3", owner_id=u2.id, members=[u3], co_owners=[u4])
        p4 = Project(organization_id=o1.id, name="P4")
        p5 = Project(
            organization_id=o1.id,
            name="P5",
            owner_id=u1.id,
            deleted_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        px = Project(organization_id=o2.id, name="PX", owner_id=other.id, co_owners=[u1])
        s.add_all([p1, p2, p3, p4, p5, px])
        await s.commit()

        for role in (cfo, staff):
            await grant(s, role, "projects", "read")

        return SimpleNamespace(
            o1=o1.id,
            o2=o2.id,
            superadmin_role=superadmin.id,
            cfo_role=cfo.id,
            staff_role=staff.id,
            guest_role=guest.id,
            other_admin_role=other_admin.id,
            admin=admin.id,
            u1=u1.id,
            u2=u2.id,
            u3=u3.id,
            u4=u4.id,
            guest=guest_user.id,
            other=other.id,
            p1=p1.id,
            p2=p2.id,
            p3=p3.id,
            p4=p4.id,
            p5=p5.id,
            px=px.id,
        )
