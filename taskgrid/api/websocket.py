"""WebSocket endpoint for real-time notification delivery."""

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from taskgrid.database import SessionLocal
from taskgrid.models.user import User
from taskgrid.services.auth import decode_access_token
from taskgrid.services.realtime import RealtimeService, user_channel

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/ws", tags=["websocket"])


@router.websocket("/notifications")
async def websocket_notifications(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    """WebSocket endpoint pushing share events to the authenticated user.

    Authentication via token query parameter (WebSocket doesn't support headers).
    Each connection pumps the user's own Redis channel; nothing is broadcast.
    """
    # Manual DB session for WebSocket (can't use Depends normally)
    db = SessionLocal()
    realtime_service = RealtimeService()
    user_id: int | None = None

    try:
        payload = decode_access_token(token)
        if not payload or not payload.get("sub"):
            await websocket.close(code=4001, reason="Invalid token")
            return

        user_id = int(payload["sub"])
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            await websocket.close(code=4001, reason="User not found")
            return
        # The session is not needed once the user is known
        db.close()

        await websocket.accept()
        logger.info(f"WebSocket connected: user={user_id}")

        async def handle_messages() -> None:
            """Receive frames from Redis and forward them to the WebSocket."""
            async for frame in realtime_service.subscribe(user_channel(user_id)):
                if frame.get("user_id") != user_id:
                    logger.warning(f"Dropping frame for user {frame.get('user_id')} on {user_id}")
                    continue
                try:
                    await websocket.send_json(frame)
                except WebSocketDisconnect:
                    break
                except Exception as e:
                    logger.error(f"Error sending WebSocket message: {e}")
                    break

        async def handle_ping() -> None:
            """Send periodic pings to keep connection alive."""
            while True:
                try:
                    await asyncio.sleep(30)
                    await websocket.send_json({"type": "ping"})
                except Exception:
                    break

        async def handle_client() -> None:
            """Handle incoming messages from client (pong responses)."""
            while True:
                try:
                    data = await websocket.receive_json()
                    if data.get("type") == "pong":
                        continue  # Keepalive acknowledgment
                except WebSocketDisconnect:
                    break
                except Exception:
                    break

        # Stop everything as soon as one side finishes
        tasks = [
            asyncio.create_task(handle_messages()),
            asyncio.create_task(handle_ping()),
            asyncio.create_task(handle_client()),
        ]
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: user={user_id}")
    except Exception as e:
        logger.error(f"WebSocket error: {e}", exc_info=True)
    finally:
        db.close()
        await realtime_service.cleanup()
