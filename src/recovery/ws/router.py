"""WebSocket endpoint for live notifications."""

import json

import jwt
import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from recovery.auth.jwt import token_user_id
from recovery.ws.hub import NotificationHub
from recovery.ws.notifications import AuthFrame

logger = structlog.get_logger()

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Single notification socket.

    Protocol:
        Client -> Server:
            {"type": "auth", "userId": 1}            (optionally "token": "<jwt>")
            {"type": "ping"}

        Server -> Client:
            {"type": "new_match_request" | "pending_matches" | "new_message"
                     | "partner_check_in" | "match_ended", ...}
            {"type": "pong"}
            {"type": "error", "message": "..."}
    """
    hub: NotificationHub = websocket.app.state.hub
    settings = websocket.app.state.settings
    await websocket.accept()

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue
            if not isinstance(msg, dict):
                await websocket.send_json({"type": "error", "message": "Expected a JSON object"})
                continue

            frame_type = msg.get("type")

            if frame_type == "auth":
                try:
                    frame = AuthFrame.model_validate(msg)
                except ValidationError:
                    await websocket.send_json({"type": "error", "message": "Invalid auth frame"})
                    continue
                if frame.token is not None:
                    try:
                        token_owner = token_user_id(frame.token, settings)
                    except jwt.InvalidTokenError as e:
                        await websocket.send_json({"type": "error", "message": f"Authentication failed: {e}"})
                        continue
                    if token_owner != frame.user_id:
                        await websocket.send_json({"type": "error", "message": "Token does not match userId"})
                        continue
                await hub.authenticate(websocket, frame.user_id)

            elif frame_type == "ping":
                await websocket.send_json({"type": "pong"})

            else:
                await websocket.send_json({"type": "error", "message": f"Unknown type: {frame_type}"})

    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("ws_error")
    finally:
        hub.disconnect(websocket)
