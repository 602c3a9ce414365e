"""
Tests for service document slots.
"""
import pytest
from httpx import AsyncClient

from cafirm.services.document_slot_service import document_code
from tests.conftest import Seed, auth_headers
from tests.test_documents import upload
from tests.test_services import act, create_service


async def add_slots(api: AsyncClient, seed: Seed, service_id: str) -> dict[str, dict]:
    response = await api.post(
        f"/api/v1/services/{service_id}/slots",
        json={
            "slots": [
                {"document_name": "Form 16", "category": "Income"},
                {"document_name": "Bank Statement", "category": "Banking"},
                {"document_name": "Rent receipts", "is_required": False},
            ]
        },
        headers=auth_headers(seed.project_manager),
    )
    assert response.status_code == 201, response.text
    return {slot["document_name"]: slot for slot in response.json()["data"]}


async def client_document(api: AsyncClient, account, document_type: str = "form_16") -> str:
    response = await upload(api, account, document_type=document_type)
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


def test_document_code():
    assert document_code("Form 16") == "FORM_16"
    assert document_code("  PAN card (copy) ") == "PAN_CARD_COPY"


@pytest.mark.asyncio
async def test_add_slots(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    slots = await add_slots(api, seed, service["id"])

    assert slots["Form 16"]["document_code"] == "FORM_16"
    assert slots["Form 16"]["status"] == "not_started"
    assert slots["Form 16"]["client_id"] == str(seed.client.id)
    assert slots["Rent receipts"]["is_required"] is False

    # Required slots first
    response = await api.get(f"/api/v1/services/{service['id']}/slots", headers=auth_headers(seed.admin))
    assert [s["document_name"] for s in response.json()["data"]][-1] == "Rent receipts"


@pytest.mark.asyncio
async def test_team_member_cannot_add_slots(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    response = await api.post(
        f"/api/v1/services/{service['id']}/slots",
        json={"slots": [{"document_name": "Form 16"}]},
        headers=auth_headers(seed.team_member),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_matching_documents_by_type(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    slots = await add_slots(api, seed, service["id"])
    form16 = await client_document(api, seed.client, "form_16")
    await client_document(api, seed.client, "pan_card")
    await client_document(api, seed.other_client, "form_16")

    response = await api.get(
        f"/api/v1/slots/{slots['Form 16']['id']}/matching-documents",
        headers=auth_headers(seed.project_manager),
    )
    assert response.status_code == 200
    assert [d["id"] for d in response.json()["data"]] == [form16]

    response = await api.get(
        f"/api/v1/services/{service['id']}/client-documents",
        headers=auth_headers(seed.project_manager),
    )
    assert len(response.json()["data"]) == 2


@pytest.mark.asyncio
async def test_process_actions(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    await act(api, seed.admin, service["id"], "start")
    slots = await add_slots(api, seed, service["id"])
    form16 = await client_document(api, seed.client)
    foreign = await client_document(api, seed.other_client)

    response = await api.post(
        f"/api/v1/services/{service['id']}/slots/actions",
        json={
            "actions": [
                {"slot_id": slots["Form 16"]["id"], "action": "link", "linked_document_id": form16},
                {
                    "slot_id": slots["Bank Statement"]["id"],
                    "action": "request",
                    "deadline": "2025-07-15",
                    "priority": "high",
                },
                {"slot_id": slots["Rent receipts"]["id"], "action": "link", "linked_document_id": foreign},
            ],
            "message": "Please share the statement for all accounts",
        },
        headers=auth_headers(seed.project_manager),
    )
    assert response.status_code == 200, response.text
    result = response.json()["data"]
    assert (result["linked"], result["requested"], result["skipped"]) == (1, 1, 0)
    assert result["errors"] == [f"Slot {slots['Rent receipts']['id']}: document belongs to another client"]
    assert result["service_status"] == "waiting_for_client"

    # The client sees the slots a manager acted on
    response = await api.get(f"/api/v1/services/{service['id']}/slots", headers=auth_headers(seed.client))
    visible = {s["document_name"]: s for s in response.json()["data"]}
    assert set(visible) == {"Form 16", "Bank Statement"}
    assert visible["Bank Statement"]["status"] == "requested"
    assert visible["Bank Statement"]["deadline"] == "2025-07-15"
    assert visible["Bank Statement"]["request_message"] == "Please share the statement for all accounts"
    assert visible["Form 16"]["linked_document_id"] == form16
    assert visible["Form 16"]["document_id"] == form16


@pytest.mark.asyncio
async def test_request_without_workflow_move(api: AsyncClient, seed: Seed):
    """A pending service cannot wait for the client, so its status stays put."""
    service = await create_service(api, seed)
    slots = await add_slots(api, seed, service["id"])

    response = await api.post(
        f"/api/v1/services/{service['id']}/slots/actions",
        json={"actions": [{"slot_id": slots["Form 16"]["id"], "action": "request"}]},
        headers=auth_headers(seed.admin),
    )
    assert response.json()["data"]["service_status"] == "pending"
    assert response.json()["data"]["requested"] == 1


@pytest.mark.asyncio
async def test_upload_review_cycle_and_summary(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    slots = await add_slots(api, seed, service["id"])
    form16 = await client_document(api, seed.client)
    await api.post(
        f"/api/v1/services/{service['id']}/slots/actions",
        json={
            "actions": [
                {"slot_id": slots["Form 16"]["id"], "action": "link", "linked_document_id": form16},
                {"slot_id": slots["Bank Statement"]["id"], "action": "request"},
            ]
        },
        headers=auth_headers(seed.admin),
    )
    bank_slot = slots["Bank Statement"]["id"]
    statement = await client_document(api, seed.client, "bank_statement")

    # Another client can't even see the slot
    response = await api.post(
        f"/api/v1/slots/{bank_slot}/upload",
        json={"document_id": statement},
        headers=auth_headers(seed.other_client),
    )
    assert response.status_code == 404

    response = await api.post(
        f"/api/v1/slots/{bank_slot}/upload",
        json={"document_id": statement},
        headers=auth_headers(seed.client),
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "uploaded"

    summary = await api.get(
        f"/api/v1/services/{service['id']}/slots/summary",
        headers=auth_headers(seed.project_manager),
    )
    assert summary.json()["data"] == {
        "total": 2,
        "approved": 1,
        "pending": 0,
        "uploaded": 1,
        "rejected": 0,
        "all_approved": False,
        "ready_for_review": True,
    }

    response = await api.post(
        f"/api/v1/slots/{bank_slot}/reject",
        json={"reason": "Only two months included"},
        headers=auth_headers(seed.project_manager),
    )
    assert response.json()["data"]["status"] == "rejected"
    assert response.json()["data"]["rejection_reason"] == "Only two months included"

    response = await api.post(
        f"/api/v1/slots/{bank_slot}/upload",
        json={"document_id": statement},
        headers=auth_headers(seed.client),
    )
    assert response.json()["data"]["rejection_reason"] is None

    response = await api.post(
        f"/api/v1/slots/{bank_slot}/approve",
        json={"notes": "All twelve months present"},
        headers=auth_headers(seed.project_manager),
    )
    assert response.json()["data"]["status"] == "approved"

    summary = await api.get(
        f"/api/v1/services/{service['id']}/slots/summary",
        headers=auth_headers(seed.client),
    )
    assert summary.json()["data"]["all_approved"] is True


@pytest.mark.asyncio
async def test_review_needs_a_document(api: AsyncClient, seed: Seed):
    service = await create_service(api, seed)
    slots = await add_slots(api, seed, service["id"])

    response = await api.post(
        f"/api/v1/slots/{slots['Form 16']['id']}/approve",
        json={},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 400

    response = await api.post(
        f"/api/v1/slots/{slots['Form 16']['id']}/upload",
        json={"document_id": await client_document(api, seed.client)},
        headers=auth_headers(seed.client),
    )
    # Not requested yet
    assert response.status_code == 400
