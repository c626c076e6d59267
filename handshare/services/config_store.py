from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from handshare.core.errors import ConfigError
from handshare.models.config import AppConfig, ConfigUpdate

logger = logging.getLogger(__name__)

CONFIG_ENV = "HANDSHARE_CONFIG"
DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def resolve_config_path(path: Optional[Path | str] = None) -> Path:
    """Explicit path first, then $HANDSHARE_CONFIG, then the bundled default."""
    if path:
        return Path(path)
    return Path(os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH)


class ConfigStore:
    """YAML-backed AppConfig shared by the relay server and the client.

    A missing file is created with defaults. Updates merge field by field
    inside each section, so a partial section keeps the values it omits.
    """

    def __init__(self, path: Optional[Path | str] = None):
        self.path = resolve_config_path(path)
        self.config = self._read()

    def _read(self) -> AppConfig:
        if not self.path.exists():
            logger.info("[Config] %s not found, writing defaults", self.path)
            cfg = AppConfig()
            self.save(cfg)
            return cfg
        try:
            payload = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"{self.path}: invalid YAML: {exc}") from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ConfigError(f"{self.path}: expected a mapping at the top level")
        try:
            return AppConfig.model_validate(payload)
        except ValidationError as exc:
            raise ConfigError(f"{self.path}: {exc}") from exc

    def reload(self) -> AppConfig:
        self.config = self._read()
        return self.config

    def save(self, cfg: AppConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        staging = self.path.with_name(self.path.name + ".tmp")
        staging.write_text(yaml.safe_dump(cfg.model_dump(), sort_keys=False), encoding="utf-8")
        staging.replace(self.path)
        self.config = cfg

    def update(self, update: ConfigUpdate) -> AppConfig:
        merged = self.config.model_dump()
        for section, fields in update.model_dump(exclude_unset=True).items():
            if fields is None:
                continue
            merged[section].update(fields)
        try:
            cfg = AppConfig.model_validate(merged)
        except ValidationError as exc:
            raise ConfigError(f"rejected config update: {exc}") from exc
        self.save(cfg)
        logger.info("[Config] updated sections: %s", ", ".join(sorted(update.model_fields_set)))
        return cfg
