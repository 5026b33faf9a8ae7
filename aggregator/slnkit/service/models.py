from __future__ import annotations
from typing import List, Optional, Literal
from pydantic import BaseModel
import uuid

from ..core import clock


class AggregateRequest(BaseModel):
    solution: str
    root: str
    host_version: Optional[str] = None
    # None = use the configured defaults
    host: Optional[Literal["dte", "file"]] = None
    passes: Optional[int] = None
    stop_on_convergence: Optional[bool] = None


class MissingProject(BaseModel):
    name: str
    full_path: str
    directory: str


class AggregationRun(BaseModel):
    id: str
    status: Literal["queued", "running", "succeeded", "failed"]
    created_at: str
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    request: AggregateRequest
    # True = projects were missing and a session was driven; None = not finished
    changed: Optional[bool] = None
    missing: List[str] = []
    added: List[str] = []
    failed: List[str] = []
    passes_run: int = 0
    error: Optional[str] = None
    logs: List[str] = []

    @classmethod
    def create(cls, request: AggregateRequest) -> "AggregationRun":
        return cls(
            id=str(uuid.uuid4()),
            status="queued",
            created_at=clock.now_iso(),
            request=request,
        )

    @property
    def finished(self) -> bool:
        return self.status in ("succeeded", "failed")
