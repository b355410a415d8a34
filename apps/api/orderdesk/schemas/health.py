from typing import Literal

from pydantic import BaseModel

DependencyStatus = Literal["ok", "error", "disabled"]


class HealthResponse(BaseModel):
    status: Literal["ok"]
    mode: str


class ReadinessDependency(BaseModel):
    name: str
    status: DependencyStatus


class ReadinessResponse(BaseModel):
    status: Literal["ok", "degraded"]
    dependencies: list[ReadinessDependency]
