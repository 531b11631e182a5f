"""Scope and provisioning API tests.

Learn: Tests cover:
1. 401 without a session token, 403 when signed in but unprovisioned
2. Workspace vs account scope through the real auth pipeline
3. Idempotent provisioning
4. Store outages surfacing as 503, not 403
"""

import pytest

from inboxdesk.tenancy import ScopeLookupFailed, ScopeResolver


@pytest.mark.asyncio
async def test_scope_requires_token(client):
    r = await client.get("/api/v1/scope")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_scope_rejects_bad_token(client):
    r = await client.get(
        "/api/v1/scope", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_unprovisioned_principal_is_forbidden_not_unauthorized(
    client, auth_headers, tenants
):
    r = await client.get("/api/v1/scope", headers=auth_headers("stranger"))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_org_member_gets_workspace_scope(client, auth_headers, tenants):
    r = await client.get("/api/v1/scope", headers=auth_headers("p1", org_id="o9"))
    assert r.status_code == 200
    body = r.json()
    assert body["kind"] == "workspace"
    assert body["workspace_id"] == str(tenants["workspace"].id)
    assert body["account_id"] is None


@pytest.mark.asyncio
async def test_personal_user_gets_account_scope(client, auth_headers, tenants):
    r = await client.get("/api/v1/scope", headers=auth_headers("p2"))
    assert r.status_code == 200
    assert r.json() == {
        "kind": "account",
        "workspace_id": None,
        "account_id": str(tenants["p2"].id),
    }


@pytest.mark.asyncio
async def test_provision_creates_account(client, auth_headers):
    headers = auth_headers("fresh", email="fresh@example.com")
    assert (await client.get("/api/v1/scope", headers=headers)).status_code == 403

    r = await client.post("/api/v1/scope/provision", headers=headers)
    assert r.status_code == 200
    assert r.json()["kind"] == "account"

    r = await client.get("/api/v1/scope", headers=headers)
    assert r.status_code == 200
    assert r.json()["kind"] == "account"


@pytest.mark.asyncio
async def test_provision_with_org_creates_workspace(client, auth_headers):
    headers = auth_headers("founder", org_id="org-new")
    r = await client.post("/api/v1/scope/provision", headers=headers)
    assert r.status_code == 200
    assert r.json()["kind"] == "workspace"


@pytest.mark.asyncio
async def test_provision_is_idempotent(client, auth_headers):
    headers = auth_headers("again", org_id="org-again")
    first = (await client.post("/api/v1/scope/provision", headers=headers)).json()
    second = (await client.post("/api/v1/scope/provision", headers=headers)).json()
    assert first == second


@pytest.mark.asyncio
async def test_lookup_failure_is_503(client, auth_headers, monkeypatch):
    async def broken_resolve(self, principal):
        raise ScopeLookupFailed("Tenant lookup timed out")

    monkeypatch.setattr(ScopeResolver, "resolve", broken_resolve)
    r = await client.get("/api/v1/scope", headers=auth_headers("p1"))
    assert r.status_code == 503
    assert r.headers["Retry-After"] == "1"
