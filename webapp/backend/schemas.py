"""Pydantic schemas for API."""
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field


class ScheduleRequest(BaseModel):
    n: int = Field(..., description="Number of persons")
    r: int = Field(..., description="Number of rounds")
    scenes: int = 4
    mode: Literal["satisfy", "minimize"] = "satisfy"
    rule_flags: Dict[str, bool] = {}


class SolveRequest(ScheduleRequest):
    backend: Literal["search", "cpsat"] = "search"
    time_limit: float = 30
    node_limit: Optional[int] = None
    workers: int = 1
    seed: Optional[int] = None


class CheckResponse(BaseModel):
    ok: bool
    messages: List[str] = []
    bounds: List[int] = []


class ScheduleRow(BaseModel):
    round: int
    scene: str
    leader: int
    prosecution: List[int]
    observer: List[int]
    public: List[int]


class SolveResponse(BaseModel):
    status: str
    backend: str
    objective: Optional[int] = None
    nodes: int = 0
    elapsed_seconds: float = 0.0
    conflicts: List[str] = []
    rows: List[ScheduleRow] = []
