from fastapi import FastAPI, HTTPException, Query, Depends
from typing import List, Optional
import logging
import os

from .models import AggregateRequest, AggregationRun, MissingProject
from .runner import AggregationRunner
from .logging_provider import LogProvider, MemoryLogProvider
from ..adapters.security import verify_token, get_security_config, validate_input_path
from ..core import clock
from ..core.config import AggregatorConfig
from ..core.errors import PathNotFound, RunInProgress
from ..core.fs_scan import CandidateMember
from ..core.reconcile import find_missing

SERVER_VERSION = os.getenv("SLNKIT_VERSION", "dev")
SERVER_START_TIME = clock.now_iso()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="slnkit", version=SERVER_VERSION)


class ServiceState:
    config: AggregatorConfig = None
    runner: AggregationRunner = None
    log_provider: LogProvider = None


state = ServiceState()


def init_service(config: Optional[AggregatorConfig] = None, token: Optional[str] = None, runner: Optional[AggregationRunner] = None):
    state.config = config or AggregatorConfig()
    state.runner = runner or AggregationRunner(state.config)
    state.log_provider = MemoryLogProvider(state.runner.logs)
    get_security_config().set_token(token)


def _require_runner() -> AggregationRunner:
    if state.runner is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return state.runner


def _to_missing(items: List[CandidateMember]) -> List[MissingProject]:
    return [MissingProject(name=c.name, full_path=str(c.full_path), directory=str(c.directory)) for c in items]


@app.get("/api/version")
def api_version():
    return {
        "version": SERVER_VERSION,
        "started_at": SERVER_START_TIME
    }


@app.get("/api/health")
def health():
    runner = state.runner
    return {
        "status": "ok",
        "server_version": SERVER_VERSION,
        "auth_enabled": bool(get_security_config().token),
        "aggregating": runner.is_aggregating if runner else False,
        "host": state.config.host if state.config else None,
    }


@app.post("/api/aggregate", response_model=AggregationRun, dependencies=[Depends(verify_token)])
def aggregate(request: AggregateRequest):
    runner = _require_runner()
    validate_input_path(request.solution, "solution")
    validate_input_path(request.root, "root")
    try:
        return runner.submit(request)
    except RunInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/runs", response_model=List[AggregationRun], dependencies=[Depends(verify_token)])
def list_runs(status: Optional[str] = None, limit: int = 20):
    runs = _require_runner().list_runs()
    if status:
        runs = [r for r in runs if r.status == status]
    return runs[:limit]


@app.get("/api/runs/{run_id}", response_model=AggregationRun, dependencies=[Depends(verify_token)])
def get_run(run_id: str):
    run = _require_runner().get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")
    return run


@app.get("/api/runs/{run_id}/logs", dependencies=[Depends(verify_token)])
def get_run_logs(run_id: str, last_id: int = Query(0, ge=0)):
    if _require_runner().get_run(run_id) is None:
        raise HTTPException(status_code=404, detail="Run not found")
    lines = state.log_provider.read_log_lines(run_id)
    return {"run_id": run_id, "next_id": len(lines), "lines": lines[last_id:]}


@app.get("/api/missing", response_model=List[MissingProject], dependencies=[Depends(verify_token)])
def missing_projects(solution: Optional[str] = None, root: Optional[str] = None):
    """Without parameters: the last run's missing set. With both: computed now."""
    runner = _require_runner()
    if solution is None and root is None:
        try:
            return _to_missing(runner.missing_projects())
        except RunInProgress as e:
            raise HTTPException(status_code=409, detail=str(e))

    if not solution or not root:
        raise HTTPException(status_code=400, detail="Both solution and root are required")
    sln = validate_input_path(solution, "solution")
    root_path = validate_input_path(root, "root")
    try:
        return _to_missing(find_missing(sln, root_path, state.config.extensions))
    except PathNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
