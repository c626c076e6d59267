from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    ok: bool = True


class RelayStatusResponse(BaseModel):
    connections: int
    relayed: int
    dropped: int
    users: dict[str, float] = Field(default_factory=dict)
