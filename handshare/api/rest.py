from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from handshare.api.auth import require_http_token
from handshare.core.errors import ConfigError
from handshare.models.api import HealthResponse, RelayStatusResponse
from handshare.models.config import ConfigUpdate

router = APIRouter(prefix="/api")


def _runtime(request: Request):
    return request.app.state.runtime


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(ok=True)


@router.get("/config")
def get_config(request: Request):
    runtime = _runtime(request)
    require_http_token(request, runtime.config_store.config.server.token)
    return runtime.config_store.config.maybe_masked_dump(mask_token=True)


@router.put("/config")
def put_config(request: Request, payload: ConfigUpdate):
    runtime = _runtime(request)
    require_http_token(request, runtime.config_store.config.server.token)
    try:
        cfg = runtime.config_store.update(payload)
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    runtime.relay_hub.max_message_size = cfg.relay.max_message_size
    runtime.relay_hub.users_window_s = cfg.relay.users_window_s
    return cfg.maybe_masked_dump(mask_token=True)


@router.get("/relay/status", response_model=RelayStatusResponse)
def relay_status(request: Request):
    runtime = _runtime(request)
    require_http_token(request, runtime.config_store.config.server.token)
    return RelayStatusResponse(**runtime.relay_hub.status())
