from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Sequence, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from handshare.core.constants import LANDMARK_COUNT
from handshare.core.errors import MalformedMessageError
from handshare.core.identity import is_identity

Keypoint = Tuple[float, float, float]
Skeleton = Tuple[Keypoint, ...]


@dataclass(frozen=True)
class PosePayload:
    identity: str
    skeletons: Tuple[Skeleton, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.skeletons or not self.skeletons[0]

    def first(self) -> Skeleton:
        if not self.skeletons:
            return ()
        return self.skeletons[0]


class Prediction(BaseModel):
    landmarks: list[list[float]]

    @field_validator("landmarks")
    @classmethod
    def _validate_landmarks(cls, value: list[list[float]]) -> list[list[float]]:
        if len(value) != LANDMARK_COUNT:
            raise ValueError(f"landmarks must contain {LANDMARK_COUNT} points")
        for point in value:
            if len(point) not in (2, 3):
                raise ValueError("landmark must be [x, y] or [x, y, z]")
            if not all(math.isfinite(v) for v in point):
                raise ValueError("landmark values must be finite")
        return value


class WireMessage(BaseModel):
    user: str
    predictions: list[Prediction] = Field(default_factory=list)

    @field_validator("user")
    @classmethod
    def _validate_user(cls, value: str) -> str:
        if not is_identity(value):
            raise ValueError("user must be a #rrggbb color")
        return value


def to_keypoint(point: Sequence[Any]) -> Keypoint:
    z = float(point[2]) if len(point) > 2 else 0.0
    return (float(point[0]), float(point[1]), z)


def to_skeleton(landmarks: Sequence[Sequence[Any]]) -> Skeleton:
    return tuple(to_keypoint(point) for point in landmarks)


def payload_from_message(message: WireMessage) -> PosePayload:
    skeletons = tuple(to_skeleton(pred.landmarks) for pred in message.predictions)
    return PosePayload(identity=message.user, skeletons=skeletons)


def payload_to_dict(payload: PosePayload) -> dict:
    return {
        "user": payload.identity,
        "predictions": [
            {"landmarks": [[float(x), float(y), float(z)] for x, y, z in skeleton]}
            for skeleton in payload.skeletons
        ],
    }


def encode_message(payload: PosePayload) -> str:
    return json.dumps(payload_to_dict(payload), separators=(",", ":"))


def load_frame(raw: str | bytes) -> dict:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedMessageError(f"invalid json: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise MalformedMessageError("message must be a json object")
    return data


def is_control(data: dict) -> bool:
    # Relay acks and warnings carry a "type" and never a "user".
    return "type" in data and "user" not in data


def validate_message(data: dict) -> WireMessage:
    try:
        return WireMessage.model_validate(data)
    except ValidationError as exc:
        raise MalformedMessageError(f"invalid message: {exc.error_count()} error(s)") from exc


def parse_message(raw: str | bytes) -> WireMessage:
    return validate_message(load_frame(raw))


def decode_message(raw: str | bytes) -> PosePayload:
    return payload_from_message(parse_message(raw))
