"""
Time source for slnkit run records.
Always UTC; tests pin it with clock.frozen().
"""
import datetime
import contextlib
from typing import Optional, Generator
from contextvars import ContextVar

_frozen_time_var: ContextVar[Optional[datetime.datetime]] = ContextVar("slnkit_frozen_time", default=None)


def now_utc() -> datetime.datetime:
    frozen_dt = _frozen_time_var.get()
    if frozen_dt:
        return frozen_dt
    return datetime.datetime.now(datetime.timezone.utc)


def now_iso() -> str:
    return now_utc().isoformat()


def stamp() -> str:
    """Short wall-clock stamp used as log line prefix."""
    return now_utc().strftime("%H:%M:%S")


@contextlib.contextmanager
def frozen(dt: datetime.datetime) -> Generator[None, None, None]:
    """
    Pin the time for the duration of the block.
    Raises ValueError unless dt carries tzinfo=datetime.timezone.utc.
    """
    if dt.tzinfo != datetime.timezone.utc:
        raise ValueError("Frozen time must be strictly UTC (tzinfo=datetime.timezone.utc)")

    token = _frozen_time_var.set(dt)
    try:
        yield
    finally:
        _frozen_time_var.reset(token)
