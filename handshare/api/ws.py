from __future__ import annotations

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from handshare.api.auth import InvalidTokenError, require_ws_token

router = APIRouter()


@router.websocket("/ws/messages")
async def ws_messages(websocket: WebSocket):
    runtime = websocket.app.state.runtime
    try:
        await require_ws_token(websocket, runtime.config_store.config.server.token)
    except InvalidTokenError:
        return

    await websocket.accept()
    hub = runtime.relay_hub
    await hub.add(websocket)
    try:
        await websocket.send_json(
            {
                "type": "ack",
                "max_message_size": runtime.config_store.config.relay.max_message_size,
            }
        )
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None and message.get("bytes") is not None:
                text = message["bytes"].decode("utf-8", errors="replace")
            if text is None:
                continue
            reason = await hub.relay(text)
            if reason is not None and runtime.config_store.config.relay.warn_on_drop:
                await websocket.send_json({"type": "warn", "reason": reason})
    except WebSocketDisconnect:
        pass
    finally:
        await hub.remove(websocket)
