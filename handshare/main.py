from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI

from handshare.api.rest import router as rest_router
from handshare.api.ws import router as ws_router
from handshare.services.config_store import resolve_config_path
from handshare.services.runtime import build_runtime


def create_app(config_path: Path | str | None = None) -> FastAPI:
    app = FastAPI(title="HandShare Relay", version="0.1.0")
    app.state.runtime = build_runtime(resolve_config_path(config_path))
    app.include_router(rest_router)
    app.include_router(ws_router)
    return app


app = create_app()
