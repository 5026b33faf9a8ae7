from __future__ import annotations
# -*- coding: utf-8 -*-

"""
fs_scan.py – Candidate project discovery.
Only the immediate children of the root are considered (no recursion).
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import PathNotFound
from .heuristics import PROJECT_EXTENSIONS, has_project_extension


@dataclass(frozen=True)
class CandidateMember:
    full_path: Path
    name: str
    directory: Path

    @classmethod
    def from_path(cls, path: Path) -> "CandidateMember":
        return cls(full_path=path, name=path.name, directory=path.parent)


def normalize_extensions(extensions: Optional[Iterable[str]]) -> tuple:
    """'csproj, .vbproj' style input -> ('.csproj', '.vbproj'). Case is kept."""
    if not extensions:
        return PROJECT_EXTENSIONS
    if isinstance(extensions, str):
        extensions = extensions.split(",")
    cleaned = []
    for e in extensions:
        e = e.strip()
        if not e:
            continue
        if not e.startswith("."):
            e = "." + e
        if e not in cleaned:
            cleaned.append(e)
    return tuple(cleaned) if cleaned else PROJECT_EXTENSIONS


def collect_candidates(root_path: str | Path, extensions: Iterable[str] = PROJECT_EXTENSIONS) -> List[CandidateMember]:
    root = Path(root_path).expanduser()
    if not root.exists() or not root.is_dir():
        raise PathNotFound(root, "Root folder")

    root = root.resolve()
    allowed = tuple(extensions)
    found: List[CandidateMember] = []
    for child in root.iterdir():
        if not child.is_file():
            continue
        if not has_project_extension(child.name, allowed):
            continue
        found.append(CandidateMember.from_path(child))

    found.sort(key=lambda c: c.name)
    return found
