"""Tests for account routes, admin token gating and relay API-key gating."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import _make_settings


pytestmark = pytest.mark.asyncio

ALICE = {"X-API-Key": "key-alice"}


@pytest_asyncio.fixture
async def admin_client(app_with_services):
    app_with_services.state.settings = _make_settings(relay_admin_token="admin-secret")
    transport = ASGITransport(app=app_with_services)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def gated_client(app_with_services):
    app_with_services.state.settings = _make_settings(require_api_key=True)
    transport = ASGITransport(app=app_with_services)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ---------------------------------------------------------------------------
# Account owner routes
# ---------------------------------------------------------------------------

async def test_get_account(client):
    resp = await client.get("/api/account", headers=ALICE)
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == 7
    assert data["is_paid"] is True


async def test_get_account_without_key_is_401(client):
    resp = await client.get("/api/account")
    assert resp.status_code == 401


async def test_get_account_with_unknown_key_is_401(client):
    resp = await client.get("/api/account", headers={"X-API-Key": "key-nobody"})
    assert resp.status_code == 401


async def test_check_vault(client):
    resp = await client.get("/api/account/vaults/eddsa-1", headers=ALICE)
    assert resp.status_code == 200
    assert resp.json() == {"account_id": 7, "authorized": True}

    resp = await client.get("/api/account/vaults/not-mine", headers=ALICE)
    assert resp.status_code == 401


async def test_register_vault_is_idempotent(client, account_store):
    body = {"public_key_ecdsa": "ecdsa-2", "public_key_eddsa": "eddsa-2"}
    resp = await client.post("/api/account/vaults", json=body, headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["registered"] is True

    resp = await client.post("/api/account/vaults", json=body, headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["registered"] is False
    assert len(account_store.vaults[7]) == 2


async def test_register_vault_over_limit_is_403(client):
    for i in (2, 3):
        resp = await client.post(
            "/api/account/vaults",
            json={"public_key_ecdsa": f"ecdsa-{i}", "public_key_eddsa": f"eddsa-{i}"},
            headers=ALICE,
        )
    assert resp.status_code == 403
    assert resp.json()["detail"] == "vault limit reached"


async def test_register_vault_rejects_empty_keys(client):
    resp = await client.post(
        "/api/account/vaults",
        json={"public_key_ecdsa": "", "public_key_eddsa": "eddsa-2"},
        headers=ALICE,
    )
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Admin routes
# ---------------------------------------------------------------------------

async def test_issue_account_without_admin_token_configured(client, account_store):
    """No admin token configured: local dev mode lets the call through."""
    resp = await client.post("/api/accounts")
    assert resp.status_code == 201
    assert resp.json()["api_key"] in account_store.accounts


async def test_issue_account_requires_admin_token(admin_client):
    resp = await admin_client.post("/api/accounts")
    assert resp.status_code == 401

    resp = await admin_client.post("/api/accounts", headers={"Authorization": "Bearer wrong"})
    assert resp.status_code == 401

    resp = await admin_client.post("/api/accounts", headers={"Authorization": "Bearer admin-secret"})
    assert resp.status_code == 201


async def test_issued_account_is_not_entitled_until_paid(admin_client):
    auth = {"Authorization": "Bearer admin-secret"}
    api_key = (await admin_client.post("/api/accounts", headers=auth)).json()["api_key"]

    resp = await admin_client.get("/api/account", headers={"X-API-Key": api_key})
    assert resp.status_code == 401

    resp = await admin_client.put(f"/api/accounts/{api_key}/entitlement", headers=auth, json={
        "expired_at": "2099-01-01T00:00:00Z",
        "no_of_vaults": 3,
        "is_paid": True,
        "payment_ref": "tx-1",
        "amount": 12.5,
    })
    assert resp.status_code == 200

    resp = await admin_client.get("/api/account", headers={"X-API-Key": api_key})
    assert resp.status_code == 200
    assert resp.json()["no_of_vaults"] == 3


async def test_update_entitlement_unknown_account_is_404(admin_client):
    resp = await admin_client.put(
        "/api/accounts/key-nobody/entitlement",
        headers={"Authorization": "Bearer admin-secret"},
        json={
            "expired_at": "2099-01-01T00:00:00Z",
            "no_of_vaults": 1,
            "is_paid": True,
            "payment_ref": "tx-1",
            "amount": 1,
        },
    )
    assert resp.status_code == 404


async def test_account_routes_unavailable_without_backends(client_no_backend):
    resp = await client_no_backend.get("/api/account", headers=ALICE)
    assert resp.status_code == 503


# ---------------------------------------------------------------------------
# Relay gating
# ---------------------------------------------------------------------------

async def test_gated_relay_requires_key_and_vault(gated_client):
    resp = await gated_client.post("/abc", json=["alice"])
    assert resp.status_code == 401

    resp = await gated_client.post("/abc", json=["alice"], headers=ALICE)
    assert resp.status_code == 401

    headers = {**ALICE, "X-Vault-PubKey": "ecdsa-1"}
    resp = await gated_client.post("/abc", json=["alice"], headers=headers)
    assert resp.status_code == 201
    resp = await gated_client.get("/message/abc/alice", headers=headers)
    assert resp.status_code == 200
