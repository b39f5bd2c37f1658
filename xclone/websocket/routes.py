from typing import Optional
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
import json
import logging

from xclone.services.auth_service import ACCESS_COOKIE, AuthService
from xclone.services.redis_service import RedisService, get_redis
from xclone.websocket.manager import ws_manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    redis: RedisService = Depends(get_redis)
):
    """
    Live channel for notifications and direct messages.

    The access token comes from the `token` query parameter or the access
    cookie; connections without a valid token are closed before accepting.
    """
    token = token or websocket.cookies.get(ACCESS_COOKIE)
    token_data = await AuthService(None, redis).verify_token(token) if token else None
    if token_data is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id = token_data.user_id
    await ws_manager.connect(user_id, websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                payload = json.loads(raw)
            except ValueError:
                continue
            if isinstance(payload, dict) and payload.get("type") == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    except WebSocketDisconnect:
        logger.debug(f"WebSocket of user {user_id} closed by client")
    finally:
        await ws_manager.disconnect(user_id, websocket)
