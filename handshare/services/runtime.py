from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from handshare.core.relay import RelayHub
from handshare.services.config_store import ConfigStore


@dataclass
class RuntimeContext:
    config_store: ConfigStore
    relay_hub: RelayHub


def build_runtime(config_path: Path) -> RuntimeContext:
    config_store = ConfigStore(config_path)
    cfg = config_store.config
    relay_hub = RelayHub(
        max_message_size=cfg.relay.max_message_size,
        users_window_s=cfg.relay.users_window_s,
    )
    return RuntimeContext(
        config_store=config_store,
        relay_hub=relay_hub,
    )
