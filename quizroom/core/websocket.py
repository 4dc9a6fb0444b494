from fastapi import WebSocket
from typing import Dict, Set
import logging

logger = logging.getLogger(__name__)


def room_state_message(room) -> dict:
    return {
        "type": "room_updated",
        "room": {
            "id": room.id,
            "code": room.code,
            "status": room.status.value,
            "currentQuestionIndex": room.current_question_index,
            "currentQuestionStartedAt": room.current_question_started_at,
            "hostId": room.host_id,
        },
    }


class ConnectionManager:
    def __init__(self):
        # room_code -> set of WebSocket connections
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        # websocket -> (room_code, user_id)
        self.connection_info: Dict[WebSocket, tuple[str, int]] = {}

    async def connect(self, websocket: WebSocket, room_code: str, user_id: int):
        if room_code not in self.active_connections:
            self.active_connections[room_code] = set()
        self.active_connections[room_code].add(websocket)
        self.connection_info[websocket] = (room_code, user_id)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.connection_info:
            room_code, _ = self.connection_info[websocket]
            if room_code in self.active_connections:
                self.active_connections[room_code].discard(websocket)
                if not self.active_connections[room_code]:
                    del self.active_connections[room_code]
            del self.connection_info[websocket]

    async def broadcast(self, room_code: str, message: dict):
        """Send message to every subscriber of a room"""
        for websocket in list(self.active_connections.get(room_code, set())):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Error broadcasting to websocket: {str(e)}")
                self.disconnect(websocket)

    async def publish_room(self, room):
        await self.broadcast(room.code, room_state_message(room))

    async def publish_room_deleted(self, room_code: str):
        await self.broadcast(room_code, {"type": "room_deleted", "code": room_code})

manager = ConnectionManager()
