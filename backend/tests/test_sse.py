"""
Tests for the server-sent events broadcaster.
"""
import json
import uuid

import pytest
from httpx import AsyncClient

from cafirm.models.accounts import UserRole
from cafirm.realtime.sse import HEARTBEAT_FRAME, SSEBroadcaster, broadcaster, format_event
from tests.conftest import Seed, auth_headers
from tests.test_documents import PDF


def parse(frame: str) -> tuple[str, dict]:
    event_line, data_line = frame.strip().split("\n")
    return event_line.removeprefix("event: "), json.loads(data_line.removeprefix("data: "))


def drain(connection) -> list[str]:
    frames = []
    while not connection.queue.empty():
        frames.append(connection.queue.get_nowait())
    return frames


def test_format_event():
    firm_id = uuid.uuid4()
    frame = format_event("document-uploaded", {"firm_id": firm_id, "size": 10})
    assert frame.endswith("\n\n")
    assert parse(frame) == ("document-uploaded", {"firm_id": str(firm_id), "size": 10})


@pytest.mark.asyncio
async def test_connect_queues_greeting():
    hub = SSEBroadcaster(queue_size=10)
    connection = await hub.connect(uuid.uuid4(), uuid.uuid4(), UserRole.ADMIN)

    event, data = parse(connection.queue.get_nowait())
    assert event == "connected"
    assert data == {"connection_id": connection.connection_id, "role": "admin"}
    assert hub.client_count() == 1

    await hub.disconnect(connection.connection_id)
    assert hub.client_count() == 0
    # Disconnecting twice is harmless
    await hub.disconnect(connection.connection_id)


@pytest.mark.asyncio
async def test_broadcast_stays_inside_firm():
    hub = SSEBroadcaster(queue_size=10)
    firm_a, firm_b = uuid.uuid4(), uuid.uuid4()
    first = await hub.connect(uuid.uuid4(), firm_a, UserRole.ADMIN)
    second = await hub.connect(uuid.uuid4(), firm_a, UserRole.CLIENT)
    outsider = await hub.connect(uuid.uuid4(), firm_b, UserRole.ADMIN)
    for connection in (first, second, outsider):
        drain(connection)

    assert await hub.broadcast_to_firm(firm_a, "ping", {"n": 1}) == 2
    assert len(drain(first)) == 1
    assert len(drain(second)) == 1
    assert drain(outsider) == []

    assert await hub.broadcast_to_roles(firm_a, [UserRole.CLIENT], "ping", {"n": 2}) == 1
    assert drain(first) == []
    assert [parse(f)[1] for f in drain(second)] == [{"n": 2}]

    assert [c["connection_id"] for c in hub.clients_for_firm(firm_b)] == [outsider.connection_id]


@pytest.mark.asyncio
async def test_send_to_user_reaches_every_stream():
    hub = SSEBroadcaster(queue_size=10)
    user_id = uuid.uuid4()
    tabs = [await hub.connect(user_id, uuid.uuid4(), UserRole.CLIENT) for _ in range(2)]
    other = await hub.connect(uuid.uuid4(), uuid.uuid4(), UserRole.CLIENT)
    for connection in (*tabs, other):
        drain(connection)

    assert await hub.send_to_user(user_id, "notice", {}) == 2
    assert drain(other) == []
    assert await hub.send_to(tabs[0].connection_id, "notice", {}) is True
    assert await hub.send_to("missing", "notice", {}) is False


@pytest.mark.asyncio
async def test_full_queue_drops_frames():
    hub = SSEBroadcaster(queue_size=2)
    firm_id = uuid.uuid4()
    # The greeting takes the first slot
    connection = await hub.connect(uuid.uuid4(), firm_id, UserRole.TEAM_MEMBER)

    assert await hub.broadcast_to_firm(firm_id, "one", {}) == 1
    assert await hub.broadcast_to_firm(firm_id, "two", {}) == 0
    assert connection.frames_dropped == 1
    assert connection.to_dict()["frames_sent"] == 2


@pytest.mark.asyncio
async def test_heartbeat_and_stream_cleanup():
    hub = SSEBroadcaster(queue_size=10)
    connection = await hub.connect(uuid.uuid4(), uuid.uuid4(), UserRole.ADMIN)
    assert await hub.heartbeat() == 1

    stream = hub.stream(connection)
    assert parse(await anext(stream))[0] == "connected"
    assert await anext(stream) == HEARTBEAT_FRAME

    await stream.aclose()
    assert hub.client_count() == 0


# === API ===


@pytest.mark.asyncio
async def test_event_stream_requires_token(api: AsyncClient, seed: Seed):
    response = await api.get("/api/v1/events")
    assert response.status_code == 401

    response = await api.get("/api/v1/events", params={"token": "not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_status_change_is_broadcast(api: AsyncClient, seed: Seed):
    connection = await broadcaster.connect(seed.admin.id, seed.firm.id, UserRole.ADMIN)
    outsider = await broadcaster.connect(uuid.uuid4(), uuid.uuid4(), UserRole.ADMIN)
    try:
        response = await api.post(
            "/api/v1/services",
            json={"client_id": str(seed.client.id), "title": "TDS return Q2"},
            headers=auth_headers(seed.admin),
        )
        service_id = response.json()["data"]["id"]
        drain(connection)
        drain(outsider)

        response = await api.post(
            f"/api/v1/services/{service_id}/actions/start",
            headers=auth_headers(seed.admin),
        )
        assert response.status_code == 200

        events = [parse(frame) for frame in drain(connection)]
        changes = [data for event, data in events if event == "service-status-changed"]
        assert len(changes) == 1
        assert changes[0]["service_id"] == service_id
        assert changes[0]["new_status"] == "in_progress"
        assert drain(outsider) == []
    finally:
        await broadcaster.disconnect(connection.connection_id)
        await broadcaster.disconnect(outsider.connection_id)


@pytest.mark.asyncio
async def test_subscribe_registers_lazily_and_cleans_up():
    hub = SSEBroadcaster(queue_size=10)
    frames = hub.subscribe(uuid.uuid4(), uuid.uuid4(), UserRole.CLIENT)
    assert hub.client_count() == 0

    assert parse(await anext(frames))[0] == "connected"
    assert hub.client_count() == 1

    await frames.aclose()
    assert hub.client_count() == 0


@pytest.mark.asyncio
async def test_broadcast_to_audience_matches_roles_or_users():
    hub = SSEBroadcaster(queue_size=10)
    firm_id = uuid.uuid4()
    admin = await hub.connect(uuid.uuid4(), firm_id, UserRole.ADMIN)
    named = await hub.connect(uuid.uuid4(), firm_id, UserRole.TEAM_MEMBER)
    bystander = await hub.connect(uuid.uuid4(), firm_id, UserRole.TEAM_MEMBER)
    for connection in (admin, named, bystander):
        drain(connection)

    delivered = await hub.broadcast_to_audience(
        firm_id,
        "notice",
        {},
        roles=[UserRole.ADMIN],
        user_ids=[named.user_id, None],
    )
    assert delivered == 2
    assert len(drain(admin)) == 1
    assert len(drain(named)) == 1
    assert drain(bystander) == []


@pytest.mark.asyncio
async def test_operation_events_reach_only_accounts_in_scope(api: AsyncClient, seed: Seed):
    accounts = {
        "admin": (seed.admin, UserRole.ADMIN),
        "project_manager": (seed.project_manager, UserRole.PROJECT_MANAGER),
        "team_member": (seed.team_member, UserRole.TEAM_MEMBER),
        "client": (seed.client, UserRole.CLIENT),
        "other_team_member": (seed.other_team_member, UserRole.TEAM_MEMBER),
        "other_client": (seed.other_client, UserRole.CLIENT),
    }
    connections = {
        name: await broadcaster.connect(account.id, seed.firm.id, role)
        for name, (account, role) in accounts.items()
    }
    try:
        response = await api.post(
            "/api/v1/services",
            json={"client_id": str(seed.client.id), "title": "GST return August"},
            headers=auth_headers(seed.admin),
        )
        service_id = response.json()["data"]["id"]
        for connection in connections.values():
            drain(connection)

        response = await api.post(
            f"/api/v1/services/{service_id}/actions/start",
            headers=auth_headers(seed.admin),
        )
        assert response.status_code == 200
        response = await api.post(
            "/api/v1/documents",
            files={"file": ("gstr1.pdf", PDF, "application/pdf")},
            data={"document_type": "other"},
            headers=auth_headers(seed.client),
        )
        assert response.status_code == 201

        received = {
            name: {event for event, _ in map(parse, drain(connection))}
            for name, connection in connections.items()
        }
        for name in ("admin", "project_manager", "team_member", "client"):
            assert received[name] == {"service-status-changed", "document-uploaded"}, name
        assert received["other_team_member"] == set()
        assert received["other_client"] == set()
    finally:
        for connection in connections.values():
            await broadcaster.disconnect(connection.connection_id)
