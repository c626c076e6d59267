from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    token: str = "change-me"


class ModelConfig(BaseModel):
    path: str = "yolo11n-hand-pose.pt"
    conf: float = 0.35
    iou: float = 0.45
    device: str = "cpu"
    max_hands: int = 2


class RelayConfig(BaseModel):
    max_message_size: int = 64_000
    warn_on_drop: bool = True
    users_window_s: float = 60.0


class ClientConfig(BaseModel):
    server_url: str = "ws://127.0.0.1:8000/ws/messages"
    camera_index: int = 0
    video_width: int = 640
    video_height: int = 500
    target_fps: int = 60
    mirrored: bool = True
    fade_alpha: float = 0.6
    stroke_width: int = 16
    stroke_alpha: float = 0xDA / 255.0
    peer_ttl_s: float = 10.0
    max_pending: int = 4
    open_timeout_s: float = 5.0
    show_window: bool = True

    @field_validator("fade_alpha", "stroke_alpha")
    @classmethod
    def _validate_alpha(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("alpha must be within [0, 1]")
        return value

    @field_validator("target_fps", "stroke_width", "video_width", "video_height")
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("peer_ttl_s")
    @classmethod
    def _validate_ttl(cls, value: float) -> float:
        if value < 0.0:
            raise ValueError("peer_ttl_s must be >= 0 (0 disables eviction)")
        return value


class AppConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)

    def maybe_masked_dump(self, mask_token: bool = True) -> dict:
        data = self.model_dump()
        if mask_token:
            token = data["server"].get("token", "")
            if token:
                data["server"]["token"] = "*" * max(4, len(token))
        return data


class ConfigUpdate(BaseModel):
    server: Optional[ServerConfig] = None
    model: Optional[ModelConfig] = None
    relay: Optional[RelayConfig] = None
    client: Optional[ClientConfig] = None
