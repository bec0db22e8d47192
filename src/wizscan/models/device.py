"""Device models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

BRIGHTNESS_RANGE = (10, 100)
COLOR_TEMP_RANGE = (2200, 6500)
CHANNEL_RANGE = (0, 255)
SPEED_RANGE = (0, 200)


def clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, int(value)))


class Confidence(StrEnum):
    """How strongly the evidence says this is a controllable bulb."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}


class RGB(BaseModel):
    model_config = {"extra": "forbid"}

    r: int
    g: int
    b: int

    @field_validator("r", "g", "b")
    @classmethod
    def _clamp_channel(cls, value: int) -> int:
        return clamp(value, CHANNEL_RANGE)


class _ClampedState(BaseModel):
    @field_validator("brightness", check_fields=False)
    @classmethod
    def _clamp_brightness(cls, value: int | None) -> int | None:
        return None if value is None else clamp(value, BRIGHTNESS_RANGE)

    @field_validator("color_temp", check_fields=False)
    @classmethod
    def _clamp_color_temp(cls, value: int | None) -> int | None:
        return None if value is None else clamp(value, COLOR_TEMP_RANGE)

    @field_validator("speed", check_fields=False)
    @classmethod
    def _clamp_speed(cls, value: int | None) -> int | None:
        return None if value is None else clamp(value, SPEED_RANGE)


class DeviceState(_ClampedState):
    """Last known light state."""

    model_config = {"extra": "forbid"}

    power: bool = False
    brightness: int | None = None
    color_temp: int | None = None
    rgb: RGB | None = None
    speed: int | None = None
    scene_id: int | None = None


class StateUpdate(_ClampedState):
    """Partial state change; only fields that are set get sent."""

    model_config = {"extra": "forbid"}

    power: bool | None = None
    brightness: int | None = None
    color_temp: int | None = None
    rgb: RGB | None = None
    speed: int | None = None
    scene_id: int | None = None


class Device(BaseModel):
    model_config = {"extra": "forbid"}

    id: str
    ip: str
    mac: str | None = None
    name: str | None = None
    confidence: Confidence = Confidence.HIGH
    last_seen: datetime
    rssi: int | None = None
    state: DeviceState = Field(default_factory=DeviceState)
    groups: list[str] = Field(default_factory=list)

    def feature_count(self) -> int:
        """Number of informative fields that are present."""
        present = [
            self.mac,
            self.rssi,
            self.state.brightness,
            self.state.color_temp,
            self.state.scene_id,
            self.state.power,
        ]
        return sum(1 for value in present if value is not None)


class ScanOptions(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    subnet: str | None = None
    concurrency: int = Field(default=20, ge=5, le=50)
    timeout_ms: int = Field(default=2000, gt=0)


class ScanProgress(BaseModel):
    model_config = {"extra": "forbid"}

    scanning: bool
    progress: float
    current_host: str | None = None
    devices_found: int
    hosts_scanned: int
    total_hosts: int
