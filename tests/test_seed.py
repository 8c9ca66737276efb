"""
Bootstrap seed tests.
"""
import asyncio
import logging

import pytest
from sqlalchemy import select

from erp_access.features.organizations.models import Organization
from erp_access.features.permissions.grants import load_grants
from erp_access.features.permissions.models import Role
from scripts import seed_permissions
from scripts.seed_permissions import DEFAULT_ROLES, seed_roles


async def roles_of(session, organization_id):
    result = await session.execute(select(Role).where(Role.organization_id == organization_id))
    return result.scalars().all()


@pytest.mark.asyncio
class TestSeedRoles:
    """Default roles per organization, re-runnable"""

    async def seed_organization(self, session_factory):
        async with session_factory() as session:
            organization = Organization(name="Seeded")
            session.add(organization)
            await session.commit()
            return organization

    async def test_seed_twice(self, session_factory):
        organization = await self.seed_organization(session_factory)

        async with session_factory() as session:
            await seed_roles(session, organization)
            await seed_roles(session, organization)
            roles = await roles_of(session, organization.id)

        assert sorted(r.name for r in roles) == sorted(DEFAULT_ROLES)

    async def test_concurrent_seed(self, session_factory):
        organization = await self.seed_organization(session_factory)

        async def run():
            async with session_factory() as session:
                await seed_roles(session, organization)

        await asyncio.gather(run(), run())

        async with session_factory() as session:
            roles = {r.name: r for r in await roles_of(session, organization.id)}
            assert sorted(roles) == sorted(DEFAULT_ROLES)

            assert await load_grants(session, roles["Superadmin"].id) == frozenset()
            cfo = {c.code for c in await load_grants(session, roles["CFO"].id)}
            assert "projects:read" in cfo
            assert "finance.invoices:approve" in cfo


class TestSeedLogging:
    def test_logger_is_configured(self):
        assert seed_permissions.log.name.startswith("erp_access.")
        assert seed_permissions.log.getEffectiveLevel() <= logging.INFO
