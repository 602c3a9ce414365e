"""
Tests for client management and team-member assignments.
"""
import pytest
from httpx import AsyncClient

from tests.conftest import Seed, auth_headers

CLIENTS = "/api/v1/clients"


def new_client(**overrides) -> dict:
    return {
        "email": "Accounts@IyerCo.in",
        "name": "Iyer & Co",
        "company_name": "Iyer & Co LLP",
        "pan": "aabfi1234k",
        "gstin": "33AABFI1234K1Z5",
        "pincode": "600001",
        **overrides,
    }


@pytest.mark.asyncio
async def test_create_client(api: AsyncClient, seed: Seed):
    response = await api.post(CLIENTS, json=new_client(), headers=auth_headers(seed.admin))
    assert response.status_code == 201, response.text
    client = response.json()["data"]
    assert client["email"] == "accounts@iyerco.in"
    assert client["pan"] == "AABFI1234K"
    assert client["managed_by_id"] is None
    assert "hashed_password" not in client


@pytest.mark.asyncio
async def test_project_manager_becomes_manager(api: AsyncClient, seed: Seed):
    response = await api.post(CLIENTS, json=new_client(), headers=auth_headers(seed.project_manager))
    assert response.status_code == 201
    assert response.json()["data"]["managed_by_id"] == str(seed.project_manager.id)


@pytest.mark.asyncio
async def test_email_must_be_unique_across_roles(api: AsyncClient, seed: Seed):
    response = await api.post(
        CLIENTS,
        json=new_client(email="pm@sharmaca.in"),
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_invalid_pan_rejected(api: AsyncClient, seed: Seed):
    response = await api.post(CLIENTS, json=new_client(pan="12345"), headers=auth_headers(seed.admin))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_team_member_cannot_create_client(api: AsyncClient, seed: Seed):
    response = await api.post(CLIENTS, json=new_client(), headers=auth_headers(seed.team_member))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_clients_scoped(api: AsyncClient, seed: Seed):
    admin = await api.get(CLIENTS, headers=auth_headers(seed.admin))
    assert admin.json()["total"] == 2

    team_member = await api.get(CLIENTS, headers=auth_headers(seed.team_member))
    assert [c["id"] for c in team_member.json()["data"]] == [str(seed.client.id)]

    outsider = await api.get(CLIENTS, headers=auth_headers(seed.other_team_member))
    assert outsider.json()["total"] == 0

    search = await api.get(CLIENTS, params={"search": "globex"}, headers=auth_headers(seed.admin))
    assert [c["id"] for c in search.json()["data"]] == [str(seed.other_client.id)]


@pytest.mark.asyncio
async def test_client_edits_own_profile_only(api: AsyncClient, seed: Seed):
    response = await api.patch(
        f"{CLIENTS}/{seed.client.id}",
        json={"city": "Pune", "is_active": False},
        headers=auth_headers(seed.client),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["city"] == "Pune"
    assert data["is_active"] is True

    response = await api.patch(
        f"{CLIENTS}/{seed.other_client.id}",
        json={"city": "Pune"},
        headers=auth_headers(seed.client),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_client_admin_only(api: AsyncClient, seed: Seed):
    response = await api.delete(f"{CLIENTS}/{seed.other_client.id}", headers=auth_headers(seed.project_manager))
    assert response.status_code == 403

    response = await api.delete(f"{CLIENTS}/{seed.other_client.id}", headers=auth_headers(seed.admin))
    assert response.status_code == 200

    response = await api.get(f"{CLIENTS}/{seed.other_client.id}", headers=auth_headers(seed.admin))
    assert response.status_code == 404

    # A deleted client can no longer sign in
    response = await api.get("/api/v1/auth/me", headers=auth_headers(seed.other_client))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_set_manager(api: AsyncClient, seed: Seed):
    url = f"{CLIENTS}/{seed.other_client.id}/manager"
    response = await api.put(
        url,
        json={"managed_by_id": str(seed.project_manager.id)},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 200
    assert response.json()["data"]["managed_by_id"] == str(seed.project_manager.id)

    response = await api.put(
        url,
        json={"managed_by_id": str(seed.team_member.id)},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 422

    response = await api.put(url, json={"managed_by_id": None}, headers=auth_headers(seed.admin))
    assert response.json()["data"]["managed_by_id"] is None


# === ASSIGNMENTS ===


@pytest.mark.asyncio
async def test_assign_and_unassign_team_member(api: AsyncClient, seed: Seed):
    url = f"{CLIENTS}/{seed.other_client.id}/assignments"
    body = {"team_member_id": str(seed.other_team_member.id)}

    response = await api.post(url, json=body, headers=auth_headers(seed.project_manager))
    assert response.status_code == 201
    assert response.json()["data"]["assigned_by_role"] == "project_manager"

    response = await api.post(url, json=body, headers=auth_headers(seed.project_manager))
    assert response.status_code == 409

    # The assignment opens the client up to the team member
    response = await api.get(f"{CLIENTS}/{seed.other_client.id}", headers=auth_headers(seed.other_team_member))
    assert response.status_code == 200

    response = await api.get(url, headers=auth_headers(seed.admin))
    assert [t["id"] for t in response.json()["data"]] == [str(seed.other_team_member.id)]

    response = await api.delete(f"{url}/{seed.other_team_member.id}", headers=auth_headers(seed.admin))
    assert response.status_code == 200

    response = await api.get(f"{CLIENTS}/{seed.other_client.id}", headers=auth_headers(seed.other_team_member))
    assert response.status_code == 404

    response = await api.delete(f"{url}/{seed.other_team_member.id}", headers=auth_headers(seed.admin))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_assign_requires_team_member(api: AsyncClient, seed: Seed):
    response = await api.post(
        f"{CLIENTS}/{seed.other_client.id}/assignments",
        json={"team_member_id": str(seed.project_manager.id)},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 404

    response = await api.post(
        f"{CLIENTS}/{seed.other_client.id}/assignments",
        json={"team_member_id": str(seed.team_member.id)},
        headers=auth_headers(seed.team_member),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_team_member_client_list(api: AsyncClient, seed: Seed):
    url = f"/api/v1/staff/team-members/{seed.team_member.id}/clients"

    response = await api.get(url, headers=auth_headers(seed.team_member))
    assert [c["id"] for c in response.json()["data"]] == [str(seed.client.id)]

    response = await api.get(url, headers=auth_headers(seed.other_team_member))
    assert response.status_code == 403

    response = await api.get(url, headers=auth_headers(seed.admin))
    assert response.status_code == 200
