from __future__ import annotations
# -*- coding: utf-8 -*-

"""
reconcile.py – Adds project files found on disk to a solution that lacks them.

One run is strictly sequential:

    scan manifest -> collect candidates -> diff
      -> (nothing missing: done, no session)
      -> open session -> N add passes -> save -> close

Open, save and close each go through ``attempt_to``. Adds do not: a failing
member is skipped for the pass and tried again in the next one. The missing
set is computed once per run and never re-read from the manifest; an in-memory
roster of what the host reports (plus what we added) prevents duplicate adds.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

from ..adapters.automation import DEFAULT_HOST_VERSION, AutomationSurface, HostVersion, MemberRef, flatten_members
from .config import DEFAULT_PASSES, AggregatorConfig
from .errors import PathNotFound
from .fs_scan import CandidateMember, collect_candidates
from .heuristics import PROJECT_EXTENSIONS
from .manifest_scan import extract_member_identifiers, is_referenced
from .retry import DEFAULT_ATTEMPTS, DEFAULT_DELAY_SEC, attempt_to

logger = logging.getLogger(__name__)

LogFn = Callable[..., None]

# Engine states
IDLE = "idle"
SCANNING = "scanning"
DIFFING = "diffing"
NOOP_DONE = "noop_done"
SESSION_OPENING = "session_opening"
ADDING_MEMBERS = "adding_members"
SAVING = "saving"
CLOSING = "closing"
DONE = "done"


def _default_log(fmt: str, *args: Any) -> None:
    logger.info(fmt.format(*args))


def _path_key(p: str | Path) -> str:
    return os.path.normcase(os.path.normpath(str(p)))


def compute_missing(identifiers: Iterable[str], candidates: Iterable[CandidateMember]) -> List[CandidateMember]:
    """Candidates whose file name does not occur inside any manifest identifier."""
    known = list(identifiers)
    return [c for c in candidates if not is_referenced(c.name, known)]


@dataclass
class ReconcileResult:
    missing: List[CandidateMember] = field(default_factory=list)
    added: List[CandidateMember] = field(default_factory=list)
    failed: List[CandidateMember] = field(default_factory=list)
    passes_run: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.missing)


class SolutionReconciler:
    def __init__(
        self,
        manifest_path: str | Path,
        automation: AutomationSurface,
        host_version: HostVersion = DEFAULT_HOST_VERSION,
        log: Optional[LogFn] = None,
        passes: int = DEFAULT_PASSES,
        attempts: int = DEFAULT_ATTEMPTS,
        retry_delay: float = DEFAULT_DELAY_SEC,
        extensions: Iterable[str] = PROJECT_EXTENSIONS,
        stop_on_convergence: bool = False,
        cancel: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.manifest_path = Path(manifest_path).expanduser()
        self.automation = automation
        self.host_version = HostVersion.parse(host_version)
        self.log = log or _default_log
        self.passes = passes
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.extensions = tuple(extensions)
        self.stop_on_convergence = stop_on_convergence
        self.cancel = cancel
        self._sleep = sleep

        self.state = IDLE
        self.roster: List[MemberRef] = []
        self.last_result: Optional[ReconcileResult] = None
        self._session: Any = None

    @classmethod
    def from_config(
        cls,
        manifest_path: str | Path,
        automation: AutomationSurface,
        config: AggregatorConfig,
        log: Optional[LogFn] = None,
        cancel: Optional[threading.Event] = None,
    ) -> "SolutionReconciler":
        return cls(
            manifest_path,
            automation,
            host_version=HostVersion.parse(config.host_version),
            log=log,
            passes=config.passes,
            attempts=config.attempts,
            retry_delay=config.retry_delay,
            extensions=config.extensions,
            stop_on_convergence=config.stop_on_convergence,
            cancel=cancel,
        )

    @property
    def is_open(self) -> bool:
        return self._session is not None

    # --- Diff ---

    def find_missing(self, root_path: str | Path) -> List[CandidateMember]:
        parent = self.manifest_path.parent
        if not parent.is_dir():
            raise PathNotFound(parent, "Solution folder")

        self.state = SCANNING
        known = extract_member_identifiers(self.manifest_path)
        candidates = collect_candidates(root_path, self.extensions)

        self.state = DIFFING
        missing = compute_missing(known, candidates)
        logger.info(
            f"{self.manifest_path.name}: {len(known)} referenced, {len(candidates)} on disk, {len(missing)} missing"
        )
        return missing

    # --- Run ---

    def reconcile(self, root_path: str | Path) -> bool:
        """True if members had to be added, False if the solution was already complete."""
        missing = self.find_missing(root_path)
        result = ReconcileResult(missing=list(missing))
        self.last_result = result

        if not missing:
            self.state = NOOP_DONE
            return False

        self.open()

        self.state = ADDING_MEMBERS
        for i in range(self.passes):
            result.passes_run = i + 1
            added_now = self._add_pass(missing, result)
            if self.stop_on_convergence:
                if added_now == 0 or len(result.added) == len(missing):
                    logger.info(f"Converged after pass {i + 1}")
                    break

        result.failed = [c for c in missing if not self._in_roster(c)]
        for c in result.failed:
            self.log("Failed to add: {0}", c.name)

        self.save()
        self.close()
        self.state = DONE
        return True

    def _in_roster(self, candidate: CandidateMember) -> bool:
        key = _path_key(candidate.full_path)
        return any(_path_key(m.full_name) == key for m in self.roster)

    def _add_pass(self, missing: List[CandidateMember], result: ReconcileResult) -> int:
        added = 0
        for candidate in missing:
            if self._in_roster(candidate):
                continue
            try:
                handle = self.automation.add_member(self._session, candidate.full_path)
            except Exception as e:
                logger.debug(f"Add failed for {candidate.name}: {e}")
                continue
            self.roster.append(handle)
            # host may report a different spelling of the path
            if not self._in_roster(candidate):
                self.roster.append(MemberRef(full_name=str(candidate.full_path), name=candidate.name))
            result.added.append(candidate)
            added += 1
            self.log("{0}", candidate.name)
        return added

    # --- Session ---

    def _retry(self, operation: Callable[[], Any], describe: str) -> Any:
        return attempt_to(
            operation,
            attempts_remaining=self.attempts,
            delay=self.retry_delay,
            cancel=self.cancel,
            sleep=self._sleep,
            describe=describe,
        )

    def open(self) -> None:
        """Open (or attach to) the solution and load its current members into the roster."""
        self.state = SESSION_OPENING

        def _open_and_enumerate():
            if self._session is None:
                self._session = self.automation.open_or_attach(self.host_version, self.manifest_path)
            self.roster = flatten_members(self.automation.enumerate_members(self._session))

        self._retry(_open_and_enumerate, "open solution")
        logger.info(f"Solution open with {len(self.roster)} existing project(s)")

    def save(self) -> None:
        self.state = SAVING
        self._retry(lambda: self.automation.save(self._session, self.manifest_path), "save solution")

    def close(self) -> None:
        """Persisting is the caller's job; this only releases the host. No-op when nothing is open."""
        if self._session is None:
            return
        self.state = CLOSING
        session = self._session
        self._retry(lambda: self.automation.close(session), "close solution")
        self._session = None


def find_missing(
    manifest_path: str | Path,
    root_path: str | Path,
    extensions: Iterable[str] = PROJECT_EXTENSIONS,
) -> List[CandidateMember]:
    """Missing-project view without opening a session (no host needed)."""
    return SolutionReconciler(manifest_path, automation=None, extensions=extensions).find_missing(root_path)
