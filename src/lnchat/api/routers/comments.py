"""Comment feed routes: history and live WebSocket."""

from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from prometheus_client import Gauge

from ...application.dtos import CommentsResponseDTO
from ...application.use_cases.broadcast import BroadcastHub
from ...application.use_cases.feed import CommentFeed
from ..dependencies import get_broadcast_hub, get_comment_feed

router = APIRouter(prefix="/api", tags=["comments"])

live_subscribers = Gauge(
    "live_subscribers",
    "Currently connected live feed subscribers",
)


@router.get("/messages", response_model=CommentsResponseDTO)
async def get_messages(
    feed: CommentFeed = Depends(get_comment_feed),
) -> CommentsResponseDTO:
    """Return the most recent comments, oldest first."""
    return CommentsResponseDTO(messages=feed.messages())


@router.websocket("/ws")
async def live_feed(
    websocket: WebSocket,
    hub: BroadcastHub = Depends(get_broadcast_hub),
) -> None:
    """Stream MESSAGE and NUM_USERS events until the client goes away."""
    await websocket.accept()
    await hub.subscribe(websocket)
    live_subscribers.set(hub.count())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await hub.unsubscribe(websocket)
        live_subscribers.set(hub.count())
