"""Group models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Group(BaseModel):
    """Named set of devices controlled together."""

    model_config = {"extra": "forbid"}

    id: str
    name: str
    description: str | None = None
    color: str | None = None
    icon: str | None = None
    devices: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class GroupControlResult(BaseModel):
    total: int
    successes: int
    failures: int
