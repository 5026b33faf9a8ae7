from __future__ import annotations

"""
automation.py – Contract between the reconciler and the host that owns a solution.

The host is stateful and unreliable: calls may fail while it is busy, and
``add_member`` may fail until the solution has "settled". The reconciler only
ever talks to it through ``AutomationSurface``.
"""

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Protocol


class HostVersion(enum.Enum):
    VS2013 = "VisualStudio.DTE.12.0"
    VS2015 = "VisualStudio.DTE.14.0"

    @property
    def progid(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: "str | HostVersion") -> "HostVersion":
        """Accepts the enum name (VS2015), the ProgID, or the year (2015)."""
        if isinstance(text, cls):
            return text
        t = (text or "").strip()
        for v in cls:
            if t.upper() == v.name or t == v.value or t == v.name[2:]:
                return v
        raise ValueError(f"Unknown host version: {text!r}. Expected one of {[v.name for v in cls]}")


DEFAULT_HOST_VERSION = HostVersion.VS2015

KIND_PROJECT = "project"
KIND_FOLDER = "folder"


@dataclass
class MemberRef:
    """A project as the host reports it. Folders carry their members in ``children``."""
    full_name: str
    name: str = ""
    kind: str = KIND_PROJECT
    children: List["MemberRef"] = field(default_factory=list)


def flatten_members(members: List[MemberRef]) -> List[MemberRef]:
    """Expand solution folders into the projects they contain (recursively)."""
    out: List[MemberRef] = []
    for m in members:
        if m is None:
            continue
        if m.kind == KIND_FOLDER:
            out.extend(flatten_members(m.children))
        else:
            out.append(m)
    return out


class AutomationSurface(Protocol):
    def open_or_attach(self, host_version: HostVersion, manifest_path: Path) -> Any:
        ...

    def enumerate_members(self, session: Any) -> List[MemberRef]:
        ...

    def add_member(self, session: Any, file_path: Path) -> MemberRef:
        ...

    def save(self, session: Any, destination: Path) -> None:
        ...

    def close(self, session: Any) -> None:
        ...
