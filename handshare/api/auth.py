from __future__ import annotations

import secrets

from fastapi import HTTPException, Request, WebSocket

TOKEN_HEADER = "x-access-token"
# Application close code: the relay refused the connection's token.
WS_CLOSE_INVALID_TOKEN = 4401


class InvalidTokenError(Exception):
    pass


def tokens_match(expected: str, presented: str) -> bool:
    """An empty expected token leaves the relay open."""
    if not expected:
        return True
    return secrets.compare_digest(expected.encode("utf-8"), (presented or "").encode("utf-8"))


def presented_token(request: Request | WebSocket) -> str:
    return request.query_params.get("token") or request.headers.get(TOKEN_HEADER) or ""


def require_http_token(request: Request, expected: str) -> None:
    if not tokens_match(expected, presented_token(request)):
        raise HTTPException(status_code=401, detail="invalid token")


async def require_ws_token(websocket: WebSocket, expected: str) -> None:
    """Close the handshake with 4401 and raise when the token is wrong."""
    if not tokens_match(expected, presented_token(websocket)):
        await websocket.close(code=WS_CLOSE_INVALID_TOKEN, reason="invalid token")
        raise InvalidTokenError(f"{websocket.client} presented an invalid token")
