from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from quizroom.core.errors import Unauthenticated
from quizroom.core.security import user_id_from_token
from quizroom.core.utils import normalize_room_code
from quizroom.core.websocket import manager, room_state_message
from quizroom.db.session import AsyncSessionLocal
from quizroom.models.user import User
from quizroom.services import store
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

@router.websocket("/ws/rooms/{room_code}")
async def websocket_endpoint(websocket: WebSocket, room_code: str):
    """Live update subscription for one room.

    Pushes ``room_updated`` after every state change and ``room_deleted`` when
    the room goes away; clients re-read the projections on receipt.
    """
    room_code = normalize_room_code(room_code)
    token = websocket.query_params.get("token")

    # Accept the connection first to avoid connection timeout
    await websocket.accept()

    if not token:
        logger.error("No token provided")
        await websocket.close(code=4001, reason="No authentication token provided")
        return

    try:
        user_id = user_id_from_token(token)
    except Unauthenticated as e:
        logger.error(f"Token validation failed: {e.message}")
        await websocket.close(code=4004, reason="Token validation failed")
        return

    async with AsyncSessionLocal() as db:
        if not await db.get(User, user_id):
            logger.error(f"User {user_id} not found")
            await websocket.close(code=4002, reason="User not found")
            return

        room = await store.get_room_by_code(db, room_code)
        if not room:
            logger.error(f"Room with code {room_code} not found")
            await websocket.close(code=4003, reason="Room not found")
            return

        await manager.connect(websocket, room.code, user_id)
        await websocket.send_json(room_state_message(room))

    logger.debug(f"User {user_id} subscribed to room {room_code}")
    try:
        while True:
            data = await websocket.receive_json()
            if data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {user_id}")
    except Exception as e:
        logger.error(f"Error handling message: {str(e)}")
    finally:
        manager.disconnect(websocket)
        logger.info(f"Client disconnected from room {room_code}")
