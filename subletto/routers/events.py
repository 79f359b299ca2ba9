"""Live reservation events over WebSocket."""
from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ..core.auth import get_optional_user_id
from ..services.events import Subscriber, hub, listing_channel, user_channel

router = APIRouter()


@router.websocket("/listings/{listing_id}/events")
async def listing_events(
    websocket: WebSocket,
    listing_id: str,
    user_id: str | None = Depends(get_optional_user_id),
) -> None:
    """Push slot and session events for one listing to the client.

    Events are advisory; clients re-fetch availability on receipt. A caller
    identified by ``X-User-Id`` is also subscribed to their own events.
    """

    subscriber_id = websocket.query_params.get("subscriber_id") or str(uuid4())
    await websocket.accept()

    subscriber = Subscriber(subscriber_id=subscriber_id, send=websocket.send_json)
    channels = [listing_channel(listing_id)]
    if user_id:
        channels.append(user_channel(user_id))
    for channel in channels:
        await hub.subscribe(channel, subscriber)

    await websocket.send_json(
        {
            "type": "subscribed",
            "listing_id": listing_id,
            "subscriber_id": subscriber_id,
            "channels": channels,
        }
    )

    try:
        while True:
            message = await websocket.receive_json()
            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        for channel in channels:
            await hub.unsubscribe(channel, subscriber_id)
