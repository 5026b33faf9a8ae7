import logging
import threading
from typing import Any, Dict, List, Protocol

from ..core import clock

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINES = 5000


class LogProvider(Protocol):
    def read_log_lines(self, run_id: str) -> List[str]:
        ...


class RunLog:
    """
    Log collaborator handed to the reconciler: ``log(fmt, *args)``.
    Safe to call from the worker thread; lines are kept in memory and mirrored to logging.
    """

    def __init__(self, name: str = "slnkit.run", max_lines: int = DEFAULT_MAX_LINES):
        self._lines: List[str] = []
        self._lock = threading.Lock()
        self._logger = logging.getLogger(name)
        self.max_lines = max_lines

    def log(self, fmt: str, *args: Any) -> None:
        msg = fmt.format(*args) if args else fmt
        line = f"[{clock.stamp()}] {msg}"
        with self._lock:
            self._lines.append(line)
            if len(self._lines) > self.max_lines:
                del self._lines[: len(self._lines) - self.max_lines]
        self._logger.info(msg)

    __call__ = log

    def lines(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)


class MemoryLogProvider:
    def __init__(self, logs: Dict[str, RunLog]):
        self.logs = logs

    def read_log_lines(self, run_id: str) -> List[str]:
        log = self.logs.get(run_id)
        return log.lines() if log is not None else []


class MockLogProvider:
    def __init__(self, logs_map: dict):
        self.logs_map = logs_map

    def read_log_lines(self, run_id: str) -> List[str]:
        return self.logs_map.get(run_id, [])
