"""Bridge configuration."""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator


class BridgeConfig(BaseModel):
    """Settings for the agent bridge and the host loop that feeds it."""

    token: Optional[str] = None               # Shared secret; None disables the bridge
    route_prefix: str = "/api/agent"
    message_history_limit: int = Field(gt=0, default=100)
    max_advance_ticks: int = Field(ge=0, default=500)
    hotspot_limit: int = Field(gt=0, default=10)
    window_radius: int = Field(ge=0, default=6)
    max_windows: int = Field(ge=0, default=3)
    road_access_max_distance: int = Field(ge=0, default=8)
    stream_keepalive_seconds: float = Field(gt=0, default=15.0)
    stream_queue_size: int = Field(gt=0, default=256)
    observation_interval_ticks: int = Field(gt=0, default=10)
    loop_interval_seconds: float = Field(gt=0, default=0.5)
    log_level: str = "INFO"

    @field_validator("token")
    @classmethod
    def _blank_token_disables(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value

    @property
    def enabled(self) -> bool:
        return self.token is not None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BridgeConfig":
        env = os.environ if environ is None else environ
        values = {"token": env.get("AGENT_BRIDGE_TOKEN")}
        if env.get("AGENT_BRIDGE_PREFIX"):
            values["route_prefix"] = env["AGENT_BRIDGE_PREFIX"]
        if env.get("AGENT_BRIDGE_LOG_LEVEL"):
            values["log_level"] = env["AGENT_BRIDGE_LOG_LEVEL"].upper()
        if env.get("AGENT_BRIDGE_OBSERVE_EVERY"):
            values["observation_interval_ticks"] = env["AGENT_BRIDGE_OBSERVE_EVERY"]
        return cls(**values)
