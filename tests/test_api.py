"""
HTTP tests: authorization, visibility, and redaction through the FastAPI app.
"""
import httpx
import pytest
import pytest_asyncio

from erp_access.core.database.engine import get_db
from erp_access.features.permissions.catalog import default_catalog
from erp_access.main import app


@pytest_asyncio.fixture
async def client(session_factory, tenant):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def as_user(user_id, **headers):
    return {"X-User-Id": user_id, **headers}


@pytest.mark.asyncio
class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
class TestAuthorization:
    """Denials are generic 403s"""

    async def test_no_user(self, client):
        response = await client.get("/projects")
        assert response.status_code == 403
        assert response.json() == {"error": "Not permitted"}

    async def test_unknown_user(self, client):
        response = await client.get("/projects", headers=as_user("nobody"))
        assert response.status_code == 403
        assert response.json() == {"error": "Not permitted"}

    async def test_missing_capability(self, client, tenant):
        response = await client.get("/projects", headers=as_user(tenant.guest))
        assert response.status_code == 403
        assert response.json() == {"error": "Not permitted"}

    @pytest.mark.parametrize("header", ["X-Org-Id", "X-Tenant-Id"])
    async def test_tenant_header_mismatch(self, client, tenant, header):
        response = await client.get("/projects", headers=as_user(tenant.u1, **{header: tenant.o2}))
        assert response.status_code == 403
        assert response.json() == {"error": "Not permitted"}

    async def test_matching_tenant_header(self, client, tenant):
        response = await client.get("/projects", headers=as_user(tenant.u1, **{"X-Org-Id": tenant.o1}))
        assert response.status_code == 200


@pytest.mark.asyncio
class TestProjectList:
    """Visibility and redaction on the list endpoint"""

    async def test_cfo(self, client, tenant):
        response = await client.get("/projects", headers=as_user(tenant.u1))
        assert response.status_code == 200
        body = response.json()
        assert [p["name"] for p in body["items"]] == ["P1", "P2"]
        assert body["total"] == 2
        assert float(body["items"][0]["budget"]) == 1000.0

    async def test_staff_member_sees_redacted(self, client, tenant):
        response = await client.get("/projects", headers=as_user(tenant.u3))
        body = response.json()
        assert [p["name"] for p in body["items"]] == ["P3"]
        assert body["total"] == 1
        assert "budget" not in body["items"][0]
        assert body["items"][0]["member_ids"] == [tenant.u3]

    async def test_admin_sees_whole_organization(self, client, tenant):
        response = await client.get("/projects", headers=as_user(tenant.admin))
        body = response.json()
        assert [p["name"] for p in body["items"]] == ["P1", "P2", "P3", "P4"]
        assert "budget" in body["items"][0]

    async def test_other_organization(self, client, tenant):
        response = await client.get("/projects", headers=as_user(tenant.other))
        body = response.json()
        assert [p["name"] for p in body["items"]] == ["PX"]
        # "Admin" is administrative but not on the financial allowlist
        assert "budget" not in body["items"][0]


@pytest.mark.asyncio
class TestProjectDetail:
    """Invisible and missing projects look the same"""

    async def test_visible(self, client, tenant):
        response = await client.get(f"/projects/{tenant.p2}", headers=as_user(tenant.u1))
        assert response.status_code == 200
        assert response.json()["tasks"][0]["assignee_id"] == tenant.u1

    async def test_invisible_is_404(self, client, tenant):
        invisible = await client.get(f"/projects/{tenant.p4}", headers=as_user(tenant.u3))
        missing = await client.get("/projects/does-not-exist", headers=as_user(tenant.u3))
        assert invisible.status_code == missing.status_code == 404
        assert invisible.json() == missing.json()

    async def test_deleted_is_404(self, client, tenant):
        response = await client.get(f"/projects/{tenant.p5}", headers=as_user(tenant.admin))
        assert response.status_code == 404

    async def test_cross_tenant_is_404_even_for_linked_user(self, client, tenant):
        response = await client.get(f"/projects/{tenant.px}", headers=as_user(tenant.u1))
        assert response.status_code == 404

    async def test_admin_can_read_orphan(self, client, tenant):
        response = await client.get(f"/projects/{tenant.p4}", headers=as_user(tenant.admin))
        assert response.status_code == 200
        assert response.json()["name"] == "P4"


@pytest.mark.asyncio
class TestPermissionRoutes:
    """Capability checks and the grant-all repair operation"""

    async def test_check(self, client, tenant):
        response = await client.get(
            "/permissions/check",
            params={"resource": "tasks", "action": "read"},
            headers=as_user(tenant.u3),
        )
        assert response.json() == {"resource": "tasks", "action": "read", "allowed": False}

        response = await client.get(
            "/permissions/check",
            params={"resource": "tasks", "action": "read"},
            headers=as_user(tenant.admin),
        )
        assert response.json()["allowed"] is True

    async def test_check_unknown_capability(self, client, tenant):
        response = await client.get(
            "/permissions/check",
            params={"resource": "spaceships", "action": "launch"},
            headers=as_user(tenant.admin),
        )
        assert response.json()["allowed"] is False

    async def test_check_requires_params(self, client, tenant):
        response = await client.get("/permissions/check", headers=as_user(tenant.u3))
        assert response.status_code == 400

    async def test_me(self, client, tenant):
        response = await client.get("/permissions/me", headers=as_user(tenant.u3))
        assert response.json() == ["projects:read"]

        response = await client.get("/permissions/me", headers=as_user(tenant.admin))
        assert len(response.json()) == len(default_catalog())

    async def test_grant_all_requires_admin(self, client, tenant):
        response = await client.post(
            f"/permissions/roles/{tenant.staff_role}/grant-all", headers=as_user(tenant.u1)
        )
        assert response.status_code == 403

    async def test_grant_all(self, client, tenant):
        url = f"/permissions/roles/{tenant.staff_role}/grant-all"
        first = await client.post(url, headers=as_user(tenant.admin))
        assert first.status_code == 200
        assert first.json() == {
            "role_id": tenant.staff_role,
            "inserted": len(default_catalog()) - 1,
            "total": len(default_catalog()),
        }

        second = await client.post(url, headers=as_user(tenant.admin))
        assert second.json()["inserted"] == 0

        response = await client.get(
            "/permissions/check",
            params={"resource": "finance.invoices", "action": "approve"},
            headers=as_user(tenant.u3),
        )
        assert response.json()["allowed"] is True

    async def test_grant_all_other_organization_role(self, client, tenant):
        response = await client.post(
            f"/permissions/roles/{tenant.other_admin_role}/grant-all", headers=as_user(tenant.admin)
        )
        assert response.status_code == 404
