from __future__ import annotations
# -*- coding: utf-8 -*-

"""
heuristics.py – Fixed policies for recognising project files and manifest entries.
"""

from typing import Tuple

# Project files eligible for a solution (case-sensitive suffix match)
PROJECT_EXTENSIONS: Tuple[str, ...] = (".csproj", ".vbproj")

# A manifest line is a candidate entry when it contains this (case-insensitive)
ENTRY_MARKER = 'proj"'

# Token selection: must contain PROJ_TOKEN, must not contain PROJECT_WORD
PROJ_TOKEN = "proj"
PROJECT_WORD = "project"

QUOTE = '"'

# Manifests are written on Windows (backslash) but we accept both
PATH_SEPARATORS: Tuple[str, ...] = ("\\", "/")

SOLUTION_EXTENSION = ".sln"

# Project type GUIDs written by the text-file host
PROJECT_TYPE_GUIDS = {
    ".csproj": "{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}",
    ".vbproj": "{F184B08F-C81C-45F6-A57F-5ABD9991F28F}",
}
SOLUTION_FOLDER_GUID = "{2150E333-8FDC-42A3-9474-1A3956D46DE8}"


def has_project_extension(name: str, extensions=PROJECT_EXTENSIONS) -> bool:
    for ext in extensions:
        if name.endswith(ext):
            return True
    return False


def project_type_guid(name: str) -> str:
    for ext, guid in PROJECT_TYPE_GUIDS.items():
        if name.lower().endswith(ext):
            return guid
    return PROJECT_TYPE_GUIDS[".csproj"]
