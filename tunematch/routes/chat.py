import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from tunematch.auth import decode_access_token, extract_bearer_token
from tunematch.errors import AuthenticationError
from tunematch.services.chat_relay import ERROR, ChatConnection, ChatRelay

logger = logging.getLogger(__name__)

router = APIRouter()


def get_relay(websocket: WebSocket) -> ChatRelay:
    return websocket.app.state.chat_relay


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket):
    """
    Persistent chat connection.

    The session token comes from the ``token`` query parameter or a bearer
    Authorization header. Frames are JSON objects ``{"event": ..., "data": ...}``.
    """
    token = websocket.query_params.get("token") or extract_bearer_token(
        websocket.headers.get("authorization")
    )
    if not token:
        logger.warning("Websocket connection without session token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        user = decode_access_token(token)
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    relay = get_relay(websocket)
    connection = ChatConnection(websocket, user)
    relay.connect(connection)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                await relay.emit(connection, ERROR, {"message": "Frames must be text"})
                continue
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await relay.emit(connection, ERROR, {"message": "Frames must be JSON"})
                continue
            if not isinstance(frame, dict):
                await relay.emit(connection, ERROR, {"message": "Frames must be JSON objects"})
                continue

            await relay.handle_event(connection, frame.get("event"), frame.get("data"))
    except WebSocketDisconnect:
        pass
    finally:
        relay.disconnect(connection)
