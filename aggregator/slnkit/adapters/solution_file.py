from __future__ import annotations
# -*- coding: utf-8 -*-

"""
solution_file.py – Automation host that edits the solution text directly.

Used where no IDE is available (CI, non-Windows). It understands just enough
of the line format to list and append ``Project(...)``/``EndProject`` blocks;
everything else in the file is carried through untouched.
"""

import logging
import os
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..core.errors import AutomationError, MemberAddFailure
from ..core.heuristics import SOLUTION_FOLDER_GUID, project_type_guid
from .automation import DEFAULT_HOST_VERSION, KIND_FOLDER, KIND_PROJECT, HostVersion, MemberRef

logger = logging.getLogger(__name__)

PROJECT_LINE_RE = re.compile(
    r'^Project\("(?P<type>\{[^}]+\})"\)\s*=\s*"(?P<name>[^"]*)",\s*"(?P<path>[^"]*)",\s*"(?P<guid>\{[^}]+\})"'
)

_HEADERS = {
    HostVersion.VS2013: [
        "Microsoft Visual Studio Solution File, Format Version 12.00",
        "# Visual Studio 2013",
        "VisualStudioVersion = 12.0.21005.1",
        "MinimumVisualStudioVersion = 10.0.40219.1",
    ],
    HostVersion.VS2015: [
        "Microsoft Visual Studio Solution File, Format Version 12.00",
        "# Visual Studio 14",
        "VisualStudioVersion = 14.0.23107.0",
        "MinimumVisualStudioVersion = 10.0.40219.1",
    ],
}


def empty_solution_lines(host_version: HostVersion = DEFAULT_HOST_VERSION) -> List[str]:
    return [""] + list(_HEADERS[host_version]) + ["Global", "EndGlobal"]


def _to_local(manifest_dir: Path, rel: str) -> Path:
    parts = [p for p in rel.replace("\\", "/").split("/") if p]
    return Path(manifest_dir, *parts)


@dataclass
class SolutionFileSession:
    manifest_path: Path
    lines: List[str] = field(default_factory=list)
    closed: bool = False

    @property
    def directory(self) -> Path:
        return self.manifest_path.parent


class SolutionFileAutomation:
    """AutomationSurface over a plain .sln file."""

    def __init__(self, newline: str = "\r\n"):
        self.newline = newline

    def open_or_attach(self, host_version: HostVersion, manifest_path: Path) -> SolutionFileSession:
        path = Path(manifest_path)
        if path.is_file():
            try:
                text = path.read_text(encoding="utf-8-sig")
            except OSError as e:
                raise AutomationError(f"Cannot read solution {path}", e)
            lines = text.splitlines()
            logger.debug(f"Opened {path} ({len(lines)} lines)")
        else:
            lines = empty_solution_lines(host_version)
            logger.debug(f"Created new solution model for {path}")
        return SolutionFileSession(manifest_path=path, lines=lines)

    def _check_open(self, session: SolutionFileSession) -> None:
        if session.closed:
            raise AutomationError(f"Solution {session.manifest_path} is closed")

    def enumerate_members(self, session: SolutionFileSession) -> List[MemberRef]:
        self._check_open(session)
        members: List[MemberRef] = []
        for line in session.lines:
            m = PROJECT_LINE_RE.match(line.strip())
            if not m:
                continue
            if m.group("type").upper() == SOLUTION_FOLDER_GUID:
                members.append(MemberRef(full_name=m.group("name"), name=m.group("name"), kind=KIND_FOLDER))
                continue
            full = _to_local(session.directory, m.group("path"))
            members.append(MemberRef(full_name=str(full.resolve()), name=m.group("name"), kind=KIND_PROJECT))
        return members

    def add_member(self, session: SolutionFileSession, file_path: Path) -> MemberRef:
        self._check_open(session)
        path = Path(file_path).resolve()
        if not path.is_file():
            raise MemberAddFailure(path, "file does not exist")

        for existing in self.enumerate_members(session):
            if existing.kind == KIND_PROJECT and existing.full_name == str(path):
                raise MemberAddFailure(path, "already in solution")

        try:
            rel = os.path.relpath(path, session.directory.resolve())
        except ValueError:
            # different drive
            rel = str(path)
        rel = rel.replace("/", "\\")

        name = path.stem
        guid = "{" + str(uuid.uuid4()).upper() + "}"
        block = [
            f'Project("{project_type_guid(path.name)}") = "{name}", "{rel}", "{guid}"',
            "EndProject",
        ]
        insert_at = self._insert_index(session.lines)
        session.lines[insert_at:insert_at] = block
        return MemberRef(full_name=str(path), name=name, kind=KIND_PROJECT)

    @staticmethod
    def _insert_index(lines: List[str]) -> int:
        for i, line in enumerate(lines):
            if line.strip() == "Global":
                return i
        return len(lines)

    def save(self, session: SolutionFileSession, destination: Path) -> None:
        self._check_open(session)
        dest = Path(destination)
        tmp = dest.with_suffix(dest.suffix + ".tmp")
        try:
            tmp.write_text(self.newline.join(session.lines) + self.newline, encoding="utf-8-sig")
            tmp.replace(dest)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise AutomationError(f"Cannot save solution to {dest}", e)

    def close(self, session: Optional[SolutionFileSession]) -> None:
        if session is None or session.closed:
            return
        session.closed = True
