"""
Tests for tasks inside services.
"""
import pytest
from httpx import AsyncClient

from tests.conftest import Seed, auth_headers

TASKS = "/api/v1/tasks"


async def create_service(api: AsyncClient, seed: Seed, client=None) -> str:
    response = await api.post(
        "/api/v1/services",
        json={"client_id": str((client or seed.client).id), "title": "GST annual return"},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


async def create_task(api: AsyncClient, account, service_id: str, **overrides):
    body = {"service_id": service_id, "title": "Collect purchase register", **overrides}
    return await api.post(TASKS, json=body, headers=auth_headers(account))


@pytest.mark.asyncio
async def test_create_and_complete_task(api: AsyncClient, seed: Seed):
    service_id = await create_service(api, seed)
    response = await create_task(
        api, seed.project_manager, service_id, assigned_to_id=str(seed.team_member.id), priority="high"
    )
    assert response.status_code == 201
    task = response.json()["data"]
    assert task["status"] == "pending"
    assert task["priority"] == "high"
    assert task["created_by_id"] == str(seed.project_manager.id)

    response = await api.patch(
        f"{TASKS}/{task['id']}/status",
        json={"status": "completed"},
        headers=auth_headers(seed.team_member),
    )
    assert response.status_code == 200
    assert response.json()["data"]["completed_at"] is not None

    response = await api.patch(
        f"{TASKS}/{task['id']}/status",
        json={"status": "in_progress"},
        headers=auth_headers(seed.team_member),
    )
    assert response.json()["data"]["completed_at"] is None


@pytest.mark.asyncio
async def test_client_cannot_create_task(api: AsyncClient, seed: Seed):
    service_id = await create_service(api, seed)
    response = await create_task(api, seed.client, service_id)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_task_on_invisible_service_is_not_found(api: AsyncClient, seed: Seed):
    service_id = await create_service(api, seed, client=seed.other_client)
    response = await create_task(api, seed.team_member, service_id)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_assignee_must_be_team_member(api: AsyncClient, seed: Seed):
    service_id = await create_service(api, seed)
    response = await create_task(api, seed.admin, service_id, assigned_to_id=str(seed.project_manager.id))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_team_member_edits_only_own_tasks(api: AsyncClient, seed: Seed):
    service_id = await create_service(api, seed)
    task = (await create_task(api, seed.admin, service_id, assigned_to_id=str(seed.other_team_member.id))).json()[
        "data"
    ]

    # Visible through the client assignment but not editable
    response = await api.get(f"{TASKS}/{task['id']}", headers=auth_headers(seed.team_member))
    assert response.status_code == 200

    response = await api.patch(
        f"{TASKS}/{task['id']}",
        json={"title": "Reconcile GSTR-2B"},
        headers=auth_headers(seed.team_member),
    )
    assert response.status_code == 403

    response = await api.patch(
        f"{TASKS}/{task['id']}",
        json={"assigned_to_id": str(seed.team_member.id)},
        headers=auth_headers(seed.other_team_member),
    )
    assert response.status_code == 403

    response = await api.patch(
        f"{TASKS}/{task['id']}",
        json={"assigned_to_id": str(seed.team_member.id), "due_date": "2025-09-30"},
        headers=auth_headers(seed.project_manager),
    )
    assert response.status_code == 200
    assert response.json()["data"]["assigned_to_id"] == str(seed.team_member.id)


@pytest.mark.asyncio
async def test_list_tasks_scoped(api: AsyncClient, seed: Seed):
    visible = await create_service(api, seed)
    hidden = await create_service(api, seed, client=seed.other_client)
    await create_task(api, seed.admin, visible)
    await create_task(api, seed.admin, hidden, assigned_to_id=str(seed.team_member.id))
    await create_task(api, seed.admin, hidden, title="Board resolution")

    admin = await api.get(TASKS, headers=auth_headers(seed.admin))
    assert admin.json()["total"] == 3

    # Own assignment plus tasks on visible services
    team_member = await api.get(TASKS, headers=auth_headers(seed.team_member))
    assert team_member.json()["total"] == 2

    client = await api.get(TASKS, headers=auth_headers(seed.client))
    assert client.json()["total"] == 1

    by_service = await api.get(TASKS, params={"service_id": hidden}, headers=auth_headers(seed.admin))
    assert by_service.json()["total"] == 2


@pytest.mark.asyncio
async def test_delete_task(api: AsyncClient, seed: Seed):
    service_id = await create_service(api, seed)
    task = (await create_task(api, seed.admin, service_id)).json()["data"]

    response = await api.delete(f"{TASKS}/{task['id']}", headers=auth_headers(seed.team_member))
    assert response.status_code == 403

    response = await api.delete(f"{TASKS}/{task['id']}", headers=auth_headers(seed.admin))
    assert response.status_code == 200

    response = await api.get(f"{TASKS}/{task['id']}", headers=auth_headers(seed.admin))
    assert response.status_code == 404
