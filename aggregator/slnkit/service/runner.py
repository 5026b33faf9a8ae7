import concurrent.futures
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .models import AggregateRequest, AggregationRun
from .logging_provider import RunLog
from ..adapters.automation import AutomationSurface, HostVersion
from ..core import clock
from ..core.config import AggregatorConfig
from ..core.errors import RunFailure, RunInProgress
from ..core.fs_scan import CandidateMember
from ..core.reconcile import SolutionReconciler

logger = logging.getLogger(__name__)

BANNER = "**************************************************"
LOG_TAIL = 200


def create_automation(kind: str) -> AutomationSurface:
    if kind == "file":
        from ..adapters.solution_file import SolutionFileAutomation
        return SolutionFileAutomation()
    if kind == "dte":
        from ..adapters.dte import DteAutomation
        return DteAutomation()
    raise ValueError(f"Unknown automation host: {kind!r}")


def _banner(log: RunLog, title: str) -> None:
    log("")
    log(BANNER)
    log(title)
    log(BANNER)
    log("")


class AggregationRunner:
    """
    Runs reconciliations one at a time on a background worker.
    At most one run is active; a new one is refused until it finishes.
    """

    def __init__(
        self,
        config: Optional[AggregatorConfig] = None,
        automation_factory: Callable[[str], AutomationSurface] = create_automation,
        max_history: int = 50,
    ):
        self.config = config or AggregatorConfig()
        self.automation_factory = automation_factory
        self.max_history = max_history
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="slnkit-run")
        self.futures: Dict[str, concurrent.futures.Future] = {}
        self.runs: Dict[str, AggregationRun] = {}
        self.logs: Dict[str, RunLog] = {}
        self._lock = threading.RLock()
        self._active_id: Optional[str] = None
        self._missing: List[CandidateMember] = []

    # --- Gate ---

    @property
    def is_aggregating(self) -> bool:
        with self._lock:
            return self._active_id is not None

    def can_aggregate(self, request: AggregateRequest) -> bool:
        return bool(request.solution) and bool(request.root) and not self.is_aggregating

    # --- Submission ---

    def submit(self, request: AggregateRequest) -> AggregationRun:
        if not request.solution or not request.root:
            raise ValueError("Both solution and root folder are required")
        if request.host_version:
            HostVersion.parse(request.host_version)

        with self._lock:
            if self._active_id is not None:
                raise RunInProgress(f"Run {self._active_id} is still in progress")
            run = AggregationRun.create(request)
            self.runs[run.id] = run
            self.logs[run.id] = RunLog(name=f"slnkit.run.{run.id[:8]}")
            self._active_id = run.id
            self._prune_history()
            self.futures[run.id] = self.executor.submit(self._run, run.id)
        return run

    def wait(self, run_id: str, timeout: Optional[float] = None) -> AggregationRun:
        future = self.futures.get(run_id)
        if future is not None:
            future.result(timeout=timeout)
        return self.runs[run_id]

    def run_sync(self, request: AggregateRequest, raise_on_failure: bool = False) -> AggregationRun:
        run = self.wait(self.submit(request).id)
        if raise_on_failure and run.status == "failed":
            raise RunFailure(run.error or "Aggregation failed")
        return run

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True)

    # --- Queries ---

    def get_run(self, run_id: str) -> Optional[AggregationRun]:
        with self._lock:
            return self.runs.get(run_id)

    def list_runs(self) -> List[AggregationRun]:
        with self._lock:
            return sorted(self.runs.values(), key=lambda r: r.created_at, reverse=True)

    def read_log_lines(self, run_id: str) -> List[str]:
        log = self.logs.get(run_id)
        return log.lines() if log is not None else []

    def missing_projects(self) -> List[CandidateMember]:
        """Missing set computed by the last run. Not available while a run is active."""
        with self._lock:
            if self._active_id is not None:
                raise RunInProgress("Missing projects are available once the current run finishes")
            return list(self._missing)

    # --- Internals ---

    def _prune_history(self) -> None:
        # Must be called under lock
        finished = [r for r in sorted(self.runs.values(), key=lambda r: r.created_at) if r.finished]
        while len(self.runs) > self.max_history and finished:
            old = finished.pop(0)
            self.runs.pop(old.id, None)
            self.logs.pop(old.id, None)
            self.futures.pop(old.id, None)

    def _config_for(self, request: AggregateRequest) -> AggregatorConfig:
        return self.config.merged({
            "host_version": request.host_version,
            "host": request.host,
            "passes": request.passes,
            "stop_on_convergence": request.stop_on_convergence,
        })

    def _run(self, run_id: str) -> None:
        run = self.runs[run_id]
        log = self.logs[run_id]
        req = run.request

        run.status = "running"
        run.started_at = clock.now_iso()

        reconciler: Optional[SolutionReconciler] = None
        try:
            _banner(log, "     Starting the Project Aggregation process     ")
            log("Solution: {0}", req.solution)
            log("Root Folder: {0}", req.root)

            cfg = self._config_for(req)
            automation = self.automation_factory(cfg.host)
            reconciler = SolutionReconciler.from_config(Path(req.solution), automation, cfg, log=log)

            changed = reconciler.reconcile(req.root)
            result = reconciler.last_result

            run.changed = changed
            run.added = [c.name for c in result.added]
            run.failed = [c.name for c in result.failed]
            run.passes_run = result.passes_run
            if not changed:
                log("All projects are already part of the solution.")
            run.status = "succeeded"
        except Exception as e:
            log("~~~~~~ An error occurred while attempting to aggregate all the projects ~~~~~~~")
            log("Error: {0}", e)
            logger.exception(f"Aggregation run {run_id} failed")
            run.status = "failed"
            run.error = str(e)
            if reconciler is not None:
                try:
                    reconciler.close()
                except Exception:
                    logger.debug("Best-effort close after failure did not succeed", exc_info=True)
        finally:
            if reconciler is not None and reconciler.last_result is not None:
                run.missing = [c.name for c in reconciler.last_result.missing]
                with self._lock:
                    self._missing = list(reconciler.last_result.missing)

            _banner(log, "     Project Aggregation process is finished     ")
            run.finished_at = clock.now_iso()
            run.logs = log.lines()[-LOG_TAIL:]
            with self._lock:
                self._active_id = None
