from pydantic import BaseModel


class TimingStats(BaseModel):
    count: int
    avg_s: float
    max_s: float


class MetricsResponse(BaseModel):
    service: str
    counters: dict[str, int]
    timings: dict[str, TimingStats]
