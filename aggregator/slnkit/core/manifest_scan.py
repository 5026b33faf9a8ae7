from __future__ import annotations
# -*- coding: utf-8 -*-

"""
manifest_scan.py – Heuristic membership extraction for solution manifests.

The solution format is line oriented and has no clean grammar, so members
are found by scanning text instead of parsing:

  * a line is an entry candidate if it contains ``proj"`` (any case)
  * the line is split on ``"`` and empty tokens are dropped
  * the first token that contains ``proj`` but NOT ``project`` (any case)
    is the project path
  * the identifier is the last non-empty path segment of that token

The ``project`` exclusion keeps tokens such as ``ProjectDependencies`` or the
leading ``Project(`` of an entry line from being picked. A marker line with no
qualifying token yields nothing.
"""

from pathlib import Path
from typing import Iterable, Optional, Set

from .heuristics import ENTRY_MARKER, PATH_SEPARATORS, PROJ_TOKEN, PROJECT_WORD, QUOTE


def is_entry_line(line: str) -> bool:
    return ENTRY_MARKER in line.lower()


def select_member_token(line: str) -> Optional[str]:
    """Return the first quoted token that looks like a project path, or None."""
    tokens = [t for t in line.split(QUOTE) if t]
    for token in tokens:
        low = token.lower()
        if PROJ_TOKEN in low and PROJECT_WORD not in low:
            return token
    return None


def last_path_segment(token: str) -> Optional[str]:
    parts = [token]
    for sep in PATH_SEPARATORS:
        parts = [seg for p in parts for seg in p.split(sep)]
    segments = [s for s in parts if s]
    return segments[-1] if segments else None


def identifier_from_line(line: str) -> Optional[str]:
    if not is_entry_line(line):
        return None
    token = select_member_token(line)
    if token is None:
        return None
    return last_path_segment(token)


def identifiers_from_lines(lines: Iterable[str]) -> Set[str]:
    found: Set[str] = set()
    for line in lines:
        ident = identifier_from_line(line.rstrip("\r\n"))
        if ident:
            found.add(ident)
    return found


def extract_member_identifiers(manifest_path: str | Path) -> Set[str]:
    """
    Identifiers of all members referenced by the manifest.
    A manifest that does not exist yet is an empty solution, not an error.
    """
    p = Path(manifest_path)
    if not p.is_file():
        return set()
    with p.open("r", encoding="utf-8-sig", errors="replace") as f:
        return identifiers_from_lines(f)


def is_referenced(name: str, identifiers: Iterable[str]) -> bool:
    """True if ``name`` occurs inside any identifier (ordinal substring match)."""
    return any(name in ident for ident in identifiers)

