"""
Server-Sent Events stream.

Browsers' EventSource cannot set headers, so the token may also be passed
as ?token=...
"""

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from cafirm.core.dependencies import StreamUser
from cafirm.realtime.sse import broadcaster

router = APIRouter(prefix="/events", tags=["Events"])


@router.get("")
async def event_stream(current_user: StreamUser) -> StreamingResponse:
    """Live events for the caller: service-status-changed, document-uploaded and heartbeats."""
    return StreamingResponse(
        broadcaster.subscribe(
            current_user.id,
            current_user.firm_id,
            current_user.role,
        ),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
