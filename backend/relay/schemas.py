from pydantic import BaseModel


class HealthOut(BaseModel):
    ok: bool
    connections: int


class StatsOut(BaseModel):
    policy: str
    connections: int
    broadcasts: int
    queued: int
    failures: int
