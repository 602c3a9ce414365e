"""
Tests for services and their status workflow.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from cafirm.models import ProjectManager
from cafirm.models.service import SERVICE_TRANSITIONS, ServiceStatus, can_transition
from cafirm.repositories.activity_repository import ActivityLogRepository
from tests.conftest import PASSWORD_HASH, Seed, auth_headers

SERVICES = "/api/v1/services"


async def create_service(api: AsyncClient, seed: Seed, **overrides) -> dict:
    body = {
        "client_id": str(seed.client.id),
        "title": "ITR filing FY 2024-25",
        "type": "itr_filing",
        "financial_year": "2024-25",
        "internal_notes": "Client owes capital gains statement",
        **overrides,
    }
    response = await api.post(SERVICES, json=body, headers=auth_headers(seed.admin))
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def act(api: AsyncClient, account, service_id: str, action: str, reason: str | None = None):
    body = {"reason": reason} if reason else None
    return await api.post(
        f"{SERVICES}/{service_id}/actions/{action}",
        json=body,
        headers=auth_headers(account),
    )


def test_transition_table_is_closed():
    """Every target is itself a known status and terminal states lead nowhere."""
    for source, targets in SERVICE_TRANSITIONS.items():
        assert targets <= set(ServiceStatus)
    assert SERVICE_TRANSITIONS[ServiceStatus.CLOSED] == frozenset()
    assert SERVICE_TRANSITIONS[ServiceStatus.CANCELLED] == frozenset()
    assert can_transition(ServiceStatus.PENDING, ServiceStatus.IN_PROGRESS)
    assert not can_transition(ServiceStatus.PENDING, ServiceStatus.COMPLETED)


@pytest.mark.asyncio
async def test_create_service(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    assert service["status"] == "pending"
    assert service["origin"] == "firm_created"
    # Defaults to the client's project manager
    assert service["project_manager_id"] == str(seed.project_manager.id)
    assert "assigned" in service["allowed_transitions"]


@pytest.mark.asyncio
async def test_team_member_cannot_create_service(api: AsyncClient, seed: Seed):
    response = await api.post(
        SERVICES,
        json={"client_id": str(seed.client.id), "title": "GST return"},
        headers=auth_headers(seed.team_member),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_full_workflow_and_history(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    sid = service["id"]

    response = await api.post(
        f"{SERVICES}/{sid}/assign",
        json={"assignee_id": str(seed.team_member.id), "assignee_role": "team_member"},
        headers=auth_headers(seed.project_manager),
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "assigned"
    assert response.json()["data"]["current_assignee_id"] == str(seed.team_member.id)

    response = await act(api, seed.team_member, sid, "start")
    assert response.status_code == 200
    assert response.json()["data"]["started_at"] is not None

    # Team members cannot approve their own work
    response = await act(api, seed.team_member, sid, "approve")
    assert response.status_code == 403

    response = await act(api, seed.team_member, sid, "submit_for_review")
    assert response.json()["data"]["status"] == "under_review"

    response = await act(api, seed.project_manager, sid, "approve")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "completed"
    assert data["completed_at"] is not None

    response = await api.get(f"{SERVICES}/{sid}/history", headers=auth_headers(seed.admin))
    history = response.json()["data"]
    assert [h["to_status"] for h in history] == [
        "pending",
        "assigned",
        "in_progress",
        "under_review",
        "completed",
    ]
    assert history[0]["action"] == "CREATE"
    assert history[0]["from_status"] is None
    assert history[2]["changed_by_role"] == "team_member"


@pytest.mark.asyncio
async def test_invalid_transition_lists_allowed_statuses(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    response = await api.patch(
        f"{SERVICES}/{service['id']}/status",
        json={"status": "delivered"},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "INVALID_STATUS_TRANSITION"
    assert error["details"]["current_status"] == "pending"
    assert sorted(error["details"]["allowed"]) == ["assigned", "cancelled", "in_progress"]


@pytest.mark.asyncio
async def test_hold_requires_reason(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    await act(api, seed.admin, service["id"], "start")

    response = await act(api, seed.admin, service["id"], "hold")
    assert response.status_code == 422

    response = await act(api, seed.admin, service["id"], "hold", reason="Waiting on bank statement")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "on_hold"


@pytest.mark.asyncio
async def test_unknown_action(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    response = await act(api, seed.admin, service["id"], "teleport")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_client_sees_own_service_without_internal_notes(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)

    response = await api.get(f"{SERVICES}/{service['id']}", headers=auth_headers(seed.client))
    assert response.status_code == 200
    assert response.json()["data"]["internal_notes"] is None

    staff_view = await api.get(f"{SERVICES}/{service['id']}", headers=auth_headers(seed.admin))
    assert staff_view.json()["data"]["internal_notes"] == "Client owes capital gains statement"


@pytest.mark.asyncio
async def test_client_cannot_change_status(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    response = await act(api, seed.client, service["id"], "start")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_out_of_scope_service_is_not_found(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)

    for account in (seed.other_client, seed.other_team_member):
        response = await api.get(f"{SERVICES}/{service['id']}", headers=auth_headers(account))
        assert response.status_code == 404

    # Assigned team member sees it through the client assignment
    response = await api.get(f"{SERVICES}/{service['id']}", headers=auth_headers(seed.team_member))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_list_is_scoped_by_role(api: AsyncClient, seed: Seed):
    await create_service(api, seed)
    await create_service(api, seed, client_id=str(seed.other_client.id), title="GST registration")

    admin = await api.get(SERVICES, headers=auth_headers(seed.admin))
    assert admin.json()["total"] == 2

    client = await api.get(SERVICES, headers=auth_headers(seed.client))
    assert client.json()["total"] == 1

    team_member = await api.get(SERVICES, headers=auth_headers(seed.team_member))
    assert team_member.json()["total"] == 1

    outsider = await api.get(SERVICES, headers=auth_headers(seed.other_team_member))
    assert outsider.json()["total"] == 0


@pytest.mark.asyncio
async def test_board_and_stats(api: AsyncClient, seed: Seed):
    first = await create_service(api, seed)
    second = await create_service(api, seed, title="TDS return Q1")
    await act(api, seed.admin, second["id"], "start")
    third = await create_service(api, seed, title="Audit")
    await act(api, seed.admin, third["id"], "cancel", reason="Client withdrew")

    response = await api.get(f"{SERVICES}/board", headers=auth_headers(seed.admin))
    board = response.json()["data"]
    assert [s["id"] for s in board["pending"]] == [first["id"]]
    assert [s["id"] for s in board["in_progress"]] == [second["id"]]
    assert board["under_review"] == []

    response = await api.get(f"{SERVICES}/stats", headers=auth_headers(seed.admin))
    stats = response.json()["data"]
    assert stats["total"] == 3
    assert stats["by_status"]["cancelled"] == 1
    assert stats["by_status"]["in_progress"] == 1


@pytest.mark.asyncio
async def test_delete_cancels_service(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    response = await api.delete(f"{SERVICES}/{service['id']}", headers=auth_headers(seed.admin))
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "cancelled"

    # Still readable, now terminal
    response = await api.delete(f"{SERVICES}/{service['id']}", headers=auth_headers(seed.admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_service_fields(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    response = await api.patch(
        f"{SERVICES}/{service['id']}",
        json={"due_date": "2025-07-31", "fee_amount": "2500.00"},
        headers=auth_headers(seed.project_manager),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["due_date"] == "2025-07-31"
    assert data["status"] == "pending"


@pytest.mark.asyncio
async def test_same_status_is_not_a_transition(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    response = await api.patch(
        f"{SERVICES}/{service['id']}/status",
        json={"status": "pending"},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    await act(api, seed.admin, service["id"], "start")
    response = await act(api, seed.admin, service["id"], "resume")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_project_manager_sees_services_assigned_to_them(api: AsyncClient, seed: Seed, db_session):
    second_manager = ProjectManager(
        firm_id=seed.firm.id,
        email="pm2@sharmaca.in",
        name="Meera Iyer",
        hashed_password=PASSWORD_HASH,
    )
    db_session.add(second_manager)
    await db_session.commit()

    service = await create_service(api, seed)
    response = await api.get(f"{SERVICES}/{service['id']}", headers=auth_headers(second_manager))
    assert response.status_code == 404

    response = await api.post(
        f"{SERVICES}/{service['id']}/assign",
        json={"assignee_id": str(second_manager.id), "assignee_role": "project_manager"},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 200, response.text

    response = await api.get(f"{SERVICES}/{service['id']}", headers=auth_headers(second_manager))
    assert response.status_code == 200
    listed = await api.get(SERVICES, headers=auth_headers(second_manager))
    assert [s["id"] for s in listed.json()["data"]] == [service["id"]]


@pytest.mark.asyncio
async def test_activity_failure_does_not_break_status_change(api: AsyncClient, seed: Seed, monkeypatch):
    service = await create_service(api, seed)

    async def unavailable(self, instance):
        raise SQLAlchemyError("activity_logs is locked")

    monkeypatch.setattr(ActivityLogRepository, "add", unavailable)

    response = await act(api, seed.admin, service["id"], "start")
    assert response.status_code == 200, response.text
    assert response.json()["data"]["status"] == "in_progress"

    history = await api.get(f"{SERVICES}/{service['id']}/history", headers=auth_headers(seed.admin))
    assert [h["action"] for h in history.json()["data"]] == ["CREATE", "start"]
