import asyncio
import json
import logging
from typing import Any, Dict, Set
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from collections import defaultdict
from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

PENDING_PUSHES = "ws_pending_pushes"
COMMITTED_PUSHES = "ws_committed_pushes"


@event.listens_for(Session, "after_commit")
def _release_pushes(session):
    session.info.setdefault(COMMITTED_PUSHES, []).extend(session.info.pop(PENDING_PUSHES, []))


@event.listens_for(Session, "after_rollback")
def _drop_pushes(session):
    session.info.pop(PENDING_PUSHES, None)


async def dispatch_committed_pushes(session) -> None:
    """Deliver the pushes queued on a session whose transaction has committed"""
    for manager, user_id, event_type, data in session.info.pop(COMMITTED_PUSHES, []):
        await manager.send_to_user(user_id, event_type, data)


class WebSocketManager:
    def __init__(self):
        self.active_connections: Dict[int, Set[WebSocket]] = defaultdict(set)
        self.lock = asyncio.Lock()

    async def connect(self, user_id: int, websocket: WebSocket):
        """Connect a user's WebSocket"""
        await websocket.accept()

        async with self.lock:
            self.active_connections[user_id].add(websocket)

        logger.info(f"User {user_id} connected to WebSocket. Total connections: {len(self.active_connections[user_id])}")

    async def disconnect(self, user_id: int, websocket: WebSocket):
        """Disconnect a user's WebSocket"""
        async with self.lock:
            if user_id in self.active_connections:
                self.active_connections[user_id].discard(websocket)
                if not self.active_connections[user_id]:
                    del self.active_connections[user_id]

        logger.info(f"User {user_id} disconnected from WebSocket")

    async def send_to_user(self, user_id: int, event: str, data: Any):
        """Push an event to every live connection of a user"""
        async with self.lock:
            connections = list(self.active_connections.get(user_id, set()))

        if not connections:
            logger.debug(f"No active WebSocket connections for user {user_id}")
            return

        message = json.dumps({"type": event, "data": jsonable_encoder(data)})

        results = await asyncio.gather(
            *(self._send_message(connection, message) for connection in connections),
            return_exceptions=True,
        )

        # Remove broken connections
        async with self.lock:
            for connection, result in zip(connections, results):
                if isinstance(result, Exception):
                    logger.warning(f"Removing broken connection for user {user_id}: {result}")
                    self.active_connections.get(user_id, set()).discard(connection)
            if user_id in self.active_connections and not self.active_connections[user_id]:
                del self.active_connections[user_id]

    def queue(self, session, user_id: int, event_type: str, data: Any):
        """Hold a push until the session commits; a rollback discards it"""
        session.info.setdefault(PENDING_PUSHES, []).append((self, user_id, event_type, data))

    async def _send_message(self, websocket: WebSocket, message: str):
        """Send message to WebSocket; failures surface to the caller"""
        try:
            await websocket.send_text(message)
        except WebSocketDisconnect:
            raise
        except Exception as e:
            logger.error(f"Error sending WebSocket message: {e}")
            raise

    async def get_connected_users_count(self) -> int:
        """Get count of connected users"""
        async with self.lock:
            return len(self.active_connections)

    async def get_total_connections_count(self) -> int:
        """Get total count of WebSocket connections"""
        async with self.lock:
            return sum(len(connections) for connections in self.active_connections.values())


ws_manager = WebSocketManager()
