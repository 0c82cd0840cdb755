"""Websocket endpoint streaming session, vote and presence events."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from phenotype_live.api.views import live_snapshot
from phenotype_live.domain.errors import NotFoundError
from phenotype_live.domain.presence import PresenceRole
from phenotype_live.services.fanout import presence_channel, session_channel

if TYPE_CHECKING:
    from phenotype_live.containers import AppContainer
    from phenotype_live.services.fanout import Subscription

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])

CLOSE_UNAUTHORIZED = 4401
CLOSE_NOT_FOUND = 4404


@router.websocket("/sessions/{session_id}/live")
async def live_updates(
    websocket: WebSocket,
    session_id: UUID,
    identity: UUID,
    role: PresenceRole = PresenceRole.PARTICIPANT,
    token: str | None = None,
) -> None:
    """Push realtime events for one session to a connected client."""
    container: AppContainer = websocket.app.state.container
    if role == PresenceRole.ADMIN and token != container.settings.admin_token:
        await websocket.close(code=CLOSE_UNAUTHORIZED)
        return
    try:
        session = container.session_service.get_session(session_id)
    except NotFoundError:
        await websocket.close(code=CLOSE_NOT_FOUND)
        return

    await websocket.accept()
    channels = (session_channel(session_id), presence_channel(session_id))
    subscription = container.fanout.subscribe(*channels)
    await websocket.send_json(
        {"type": "snapshot", "payload": live_snapshot(container, session, role)}
    )
    container.presence.join(session_id, identity, role)
    if role == PresenceRole.ADMIN and container.photo_timer is not None:
        container.photo_timer.ensure_armed(session)
    logger.info(
        "Live client connected",
        extra={"session_id": str(session_id), "role": role.value},
    )

    receiver = asyncio.ensure_future(websocket.receive_json())
    event_task = asyncio.ensure_future(subscription.get())
    try:
        while True:
            done, _ = await asyncio.wait(
                {receiver, event_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if receiver in done:
                _handle_client_message(container, session_id, identity, role, receiver)
                receiver = asyncio.ensure_future(websocket.receive_json())
            if event_task in done:
                await websocket.send_json(event_task.result().to_message())
                if subscription.overflowed:
                    subscription = await _resync(
                        container, websocket, subscription, session_id, role
                    )
                event_task = asyncio.ensure_future(subscription.get())
    except WebSocketDisconnect:
        logger.info(
            "Live client disconnected",
            extra={"session_id": str(session_id), "identity": str(identity)},
        )
    finally:
        for task in (receiver, event_task):
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
                await task
        container.fanout.unsubscribe(subscription)
        container.presence.leave(session_id, identity)


def _handle_client_message(
    container: AppContainer,
    session_id: UUID,
    identity: UUID,
    role: PresenceRole,
    receiver: asyncio.Future[Any],
) -> None:
    try:
        message = receiver.result()
    except ValueError:
        logger.warning(
            "Ignoring malformed live message",
            extra={"session_id": str(session_id), "identity": str(identity)},
        )
        return
    if not isinstance(message, dict) or message.get("type") != "heartbeat":
        return
    if not container.presence.heartbeat(session_id, identity):
        container.presence.join(session_id, identity, role)


async def _resync(
    container: AppContainer,
    websocket: WebSocket,
    subscription: Subscription,
    session_id: UUID,
    role: PresenceRole,
) -> Subscription:
    """Replace an overflowed inbox and send full state in place of the gap."""
    container.fanout.unsubscribe(subscription)
    fresh = container.fanout.subscribe(*subscription.channels)
    session = container.session_service.get_session(session_id)
    logger.warning("Live client resynced", extra={"session_id": str(session_id)})
    await websocket.send_json(
        {"type": "resync", "payload": live_snapshot(container, session, role)}
    )
    return fresh
