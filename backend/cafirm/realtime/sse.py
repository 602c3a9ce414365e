"""
Server-sent events broadcaster.

Keeps an in-memory registry of open event streams and pushes frames to them,
filtered by firm and optionally by role. State is local to the process and is
lost on restart.

Frame format:

    event: <name>
    data: <json>

Heartbeats are SSE comments (": heartbeat") so browsers ignore them.
"""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterable

import structlog
from fastapi.encoders import jsonable_encoder

from cafirm.core.config import settings
from cafirm.models.accounts import UserRole

logger = structlog.get_logger()

HEARTBEAT_FRAME = ": heartbeat\n\n"


def format_event(event: str, data: Any) -> str:
    """Encodes one SSE frame."""
    payload = json.dumps(jsonable_encoder(data), separators=(",", ":"))
    return f"event: {event}\ndata: {payload}\n\n"


@dataclass
class SSEConnection:
    """One open event stream."""

    connection_id: str
    user_id: uuid.UUID
    firm_id: uuid.UUID
    role: UserRole
    queue: asyncio.Queue[str]
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    frames_sent: int = 0
    frames_dropped: int = 0

    def offer(self, frame: str) -> bool:
        """Enqueues a frame without waiting; a full queue drops it."""
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            self.frames_dropped += 1
            return False
        self.frames_sent += 1
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "connection_id": self.connection_id,
            "user_id": str(self.user_id),
            "firm_id": str(self.firm_id),
            "role": self.role.value,
            "connected_at": self.connected_at.isoformat(),
            "frames_sent": self.frames_sent,
            "frames_dropped": self.frames_dropped,
        }


class SSEBroadcaster:
    """
    Registry of open streams.

    The lock guards the registry only. Broadcasts take a snapshot under the
    lock and enqueue outside it, so streams may connect or disconnect while a
    broadcast is running.
    """

    def __init__(self, queue_size: int | None = None):
        self._connections: dict[str, SSEConnection] = {}
        self._firm_index: dict[uuid.UUID, set[str]] = {}
        self._lock = asyncio.Lock()
        self._queue_size = queue_size or settings.SSE_QUEUE_SIZE
        self._heartbeat_task: asyncio.Task | None = None

    # === REGISTRY ===

    async def connect(
        self,
        user_id: uuid.UUID,
        firm_id: uuid.UUID,
        role: UserRole,
    ) -> SSEConnection:
        connection = SSEConnection(
            connection_id=uuid.uuid4().hex,
            user_id=user_id,
            firm_id=firm_id,
            role=role,
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        async with self._lock:
            self._connections[connection.connection_id] = connection
            self._firm_index.setdefault(firm_id, set()).add(connection.connection_id)

        connection.offer(
            format_event(
                "connected",
                {"connection_id": connection.connection_id, "role": role.value},
            )
        )
        logger.info(
            "SSE client connected",
            connection_id=connection.connection_id,
            user_id=str(user_id),
            firm_id=str(firm_id),
            role=role.value,
        )
        return connection

    async def disconnect(self, connection_id: str) -> None:
        async with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return
            firm_connections = self._firm_index.get(connection.firm_id)
            if firm_connections is not None:
                firm_connections.discard(connection_id)
                if not firm_connections:
                    del self._firm_index[connection.firm_id]

        logger.info(
            "SSE client disconnected",
            connection_id=connection_id,
            user_id=str(connection.user_id),
        )

    # === DELIVERY ===

    async def send_to(self, connection_id: str, event: str, data: Any) -> bool:
        """Sends a frame to one stream. False when it is gone or full."""
        async with self._lock:
            connection = self._connections.get(connection_id)
        if connection is None:
            return False
        return connection.offer(format_event(event, data))

    async def send_to_user(self, user_id: uuid.UUID, event: str, data: Any) -> int:
        """Sends a frame to every stream the account has open."""
        async with self._lock:
            targets = [c for c in self._connections.values() if c.user_id == user_id]
        return self._deliver(targets, format_event(event, data))

    async def broadcast_to_firm(self, firm_id: uuid.UUID, event: str, data: Any) -> int:
        """Sends a frame to every stream of a firm. Returns how many got it."""
        targets = await self._snapshot(firm_id)
        delivered = self._deliver(targets, format_event(event, data))
        logger.debug("SSE broadcast", firm_id=str(firm_id), sse_event=event, delivered=delivered)
        return delivered

    async def broadcast_to_roles(
        self,
        firm_id: uuid.UUID,
        roles: Iterable[UserRole],
        event: str,
        data: Any,
    ) -> int:
        """Like broadcast_to_firm, limited to the given roles."""
        return await self.broadcast_to_audience(firm_id, event, data, roles=roles)

    async def broadcast_to_audience(
        self,
        firm_id: uuid.UUID,
        event: str,
        data: Any,
        roles: Iterable[UserRole] = (),
        user_ids: Iterable[uuid.UUID | None] = (),
    ) -> int:
        """
        Sends a frame to the firm streams whose role is in `roles` or whose
        account is in `user_ids`. Each stream gets the frame at most once.
        """
        wanted_roles = set(roles)
        wanted_users = {u for u in user_ids if u is not None}
        targets = [
            c
            for c in await self._snapshot(firm_id)
            if c.role in wanted_roles or c.user_id in wanted_users
        ]
        delivered = self._deliver(targets, format_event(event, data))
        logger.debug(
            "SSE broadcast",
            firm_id=str(firm_id),
            sse_event=event,
            roles=sorted(r.value for r in wanted_roles),
            users=len(wanted_users),
            delivered=delivered,
        )
        return delivered

    async def heartbeat(self) -> int:
        """Sends the heartbeat comment to every stream."""
        async with self._lock:
            targets = list(self._connections.values())
        return self._deliver(targets, HEARTBEAT_FRAME)

    # === INTROSPECTION ===

    def client_count(self) -> int:
        return len(self._connections)

    def clients_for_firm(self, firm_id: uuid.UUID) -> list[dict[str, Any]]:
        ids = self._firm_index.get(firm_id, set())
        return [self._connections[i].to_dict() for i in ids if i in self._connections]

    # === STREAMING ===

    async def stream(self, connection: SSEConnection) -> AsyncIterator[str]:
        """Yields frames for one connection until the client goes away."""
        try:
            while True:
                yield await connection.queue.get()
        finally:
            await self.disconnect(connection.connection_id)

    async def subscribe(
        self,
        user_id: uuid.UUID,
        firm_id: uuid.UUID,
        role: UserRole,
    ) -> AsyncIterator[str]:
        """
        Registers a stream on the first read and yields its frames.

        Nothing is registered until the response starts iterating, so a client
        that goes away before that leaves no entry behind.
        """
        connection = await self.connect(user_id, firm_id, role)
        try:
            async for frame in self.stream(connection):
                yield frame
        finally:
            await self.disconnect(connection.connection_id)

    # === HEARTBEAT LOOP ===

    def start_heartbeat(self, interval: float | None = None) -> None:
        if self._heartbeat_task is None or self._heartbeat_task.done():
            self._heartbeat_task = asyncio.create_task(
                self._heartbeat_loop(interval or settings.SSE_HEARTBEAT_SECONDS)
            )

    async def stop_heartbeat(self) -> None:
        if self._heartbeat_task is None:
            return
        self._heartbeat_task.cancel()
        try:
            await self._heartbeat_task
        except asyncio.CancelledError:
            pass
        self._heartbeat_task = None

    async def _heartbeat_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.heartbeat()

    # === HELPERS ===

    async def _snapshot(self, firm_id: uuid.UUID) -> list[SSEConnection]:
        async with self._lock:
            ids = self._firm_index.get(firm_id, set())
            return [self._connections[i] for i in ids if i in self._connections]

    def _deliver(self, targets: list[SSEConnection], frame: str) -> int:
        delivered = 0
        for connection in targets:
            if connection.offer(frame):
                delivered += 1
            else:
                logger.warning(
                    "SSE queue full, frame dropped",
                    connection_id=connection.connection_id,
                )
        return delivered


broadcaster = SSEBroadcaster()
