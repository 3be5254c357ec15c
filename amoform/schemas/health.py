from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class DependencyHealth(BaseModel):
    name: str
    status: Literal["ok", "error"]
    latency_ms: float | None = None
    message: str | None = None


class HealthCheckResponse(BaseModel):
    """Service status; `crm_url` is the amoCRM account the checks ran against."""

    status: Literal["ok", "degraded"]
    version: str
    crm_url: str
    dependencies: dict[str, DependencyHealth]
