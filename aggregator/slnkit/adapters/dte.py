from __future__ import annotations

"""
dte.py – Automation host backed by a running Visual Studio instance (COM/DTE).
Requires pywin32 on Windows; the import is deferred so the rest of slnkit works anywhere.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List

from ..core.errors import AutomationError, MemberAddFailure
from .automation import KIND_FOLDER, KIND_PROJECT, HostVersion, MemberRef

logger = logging.getLogger(__name__)

# EnvDTE.Constants
VS_PROJECT_KIND_SOLUTION_ITEMS = "{66A26720-8FB5-11D2-AA7E-00C04F688DDE}"
VS_PROJECT_KIND_MISC = "{66A2671D-8FB5-11D2-AA7E-00C04F688DDE}"
_FOLDER_KINDS = {VS_PROJECT_KIND_SOLUTION_ITEMS, VS_PROJECT_KIND_MISC}


def _import_win32():
    try:
        import pythoncom
        import win32com.client
    except Exception as exc:  # pragma: no cover - runtime dependency
        raise RuntimeError(
            "pywin32 is not available. Install slnkit[windows] on a Windows host, or use --host file."
        ) from exc
    return pythoncom, win32com.client


@dataclass
class DteSession:
    dte: Any
    manifest_path: Path


def _member_from_project(project: Any) -> MemberRef | None:
    if project is None:
        return None
    kind = str(getattr(project, "Kind", "")).upper()
    if kind in _FOLDER_KINDS:
        children: List[MemberRef] = []
        for item in project.ProjectItems:
            child = _member_from_project(getattr(item, "SubProject", None))
            if child is not None:
                children.append(child)
        return MemberRef(full_name=str(project.Name), name=str(project.Name), kind=KIND_FOLDER, children=children)
    return MemberRef(full_name=str(project.FullName), name=str(project.Name), kind=KIND_PROJECT)


class DteAutomation:
    def open_or_attach(self, host_version: HostVersion, manifest_path: Path) -> DteSession:
        pythoncom, client = _import_win32()
        path = Path(manifest_path)
        try:
            pythoncom.CoInitialize()
            dte = client.Dispatch(host_version.progid)
            if path.is_file():
                dte.Solution.Open(str(path))
            else:
                dte.Solution.Create(str(path.parent), path.stem)
        except Exception as e:
            raise AutomationError(f"Could not open {path} in {host_version.progid}", e)
        logger.info(f"Attached to {host_version.progid} for {path}")
        return DteSession(dte=dte, manifest_path=path)

    def enumerate_members(self, session: DteSession) -> List[MemberRef]:
        try:
            projects = list(session.dte.Solution.Projects)
        except Exception as e:
            raise AutomationError("Could not enumerate solution projects", e)
        members = []
        for p in projects:
            m = _member_from_project(p)
            if m is not None:
                members.append(m)
        return members

    def add_member(self, session: DteSession, file_path: Path) -> MemberRef:
        try:
            project = session.dte.Solution.AddFromFile(str(file_path), False)
        except Exception as e:
            raise MemberAddFailure(file_path, str(e))
        return MemberRef(full_name=str(project.FullName), name=str(project.Name), kind=KIND_PROJECT)

    def save(self, session: DteSession, destination: Path) -> None:
        try:
            session.dte.Solution.SaveAs(str(destination))
        except Exception as e:
            raise AutomationError(f"Could not save solution to {destination}", e)

    def close(self, session: DteSession | None) -> None:
        if session is None:
            return
        try:
            session.dte.Solution.Close()
            session.dte.Quit()
        except Exception as e:
            raise AutomationError("Could not close the solution", e)
