"""
ScanLedger Backend — Live Dashboard WebSocket
===============================================

What:  WS /ws/dashboard streams every scan this instance records.
How:   Authenticates with ?token=<jwt>, subscribes a queue on the
       DashboardNotifier and forwards each DashboardEvent as JSON until the
       client disconnects.

The socket is send-only; anything the client sends is ignored.
"""

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from scanledger.exceptions import AuthenticationError
from scanledger.security import actor_from_claims, decode_access_token
from scanledger.services.notifier import dashboard_notifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Dashboard"])


async def _drain_client(websocket: WebSocket) -> None:
    """Read and discard client frames; returns when the client goes away."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/ws/dashboard")
async def dashboard_feed(websocket: WebSocket, token: str = Query(default="")) -> None:
    try:
        actor = actor_from_claims(decode_access_token(token))
    except AuthenticationError as e:
        logger.warning("Dashboard connection refused: %s", e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    # Subscribed before the handshake completes, so no event recorded after
    # the client sees the connection open is missed
    queue = dashboard_notifier.subscribe()
    reader = None
    try:
        await websocket.accept()
        reader = asyncio.create_task(_drain_client(websocket))
        logger.info("Dashboard feed opened for %s", actor.username)

        while not reader.done():
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({getter, reader}, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                break
            await websocket.send_text(getter.result().model_dump_json())
    except WebSocketDisconnect:
        pass
    finally:
        if reader is not None:
            reader.cancel()
        dashboard_notifier.unsubscribe(queue)
        logger.info("Dashboard feed closed for %s", actor.username)
