import threading
from collections import Counter
from pathlib import Path

import pytest

from aggregator.slnkit.adapters.automation import MemberRef
from aggregator.slnkit.core.errors import AutomationError, MemberAddFailure


class FakeAutomation:
    """
    In-memory automation host.
    ``*_failures`` make the first N calls of that operation raise AutomationError,
    ``add_failures`` maps file names to how many adds fail before one succeeds,
    ``never_add`` names always fail. ``gate`` blocks open until set.
    """

    def __init__(self, existing=None, open_failures=0, save_failures=0, close_failures=0,
                 add_failures=None, never_add=(), gate=None):
        self.calls = Counter()
        self.existing = list(existing or [])
        self.open_failures = open_failures
        self.save_failures = save_failures
        self.close_failures = close_failures
        self.add_failures = dict(add_failures or {})
        self.never_add = set(never_add)
        self.gate = gate
        self.members = []
        self.added_paths = []
        self.saved_to = []
        self.closed = False

    def open_or_attach(self, host_version, manifest_path):
        self.calls["open"] += 1
        if self.gate is not None:
            self.gate.wait(5)
        if self.open_failures > 0:
            self.open_failures -= 1
            raise AutomationError("host busy")
        self.members = list(self.existing)
        return {"manifest": manifest_path, "version": host_version}

    def enumerate_members(self, session):
        self.calls["enumerate"] += 1
        return list(self.members)

    def add_member(self, session, file_path):
        self.calls["add"] += 1
        name = Path(file_path).name
        if name in self.never_add:
            raise MemberAddFailure(file_path, "rejected")
        if self.add_failures.get(name, 0) > 0:
            self.add_failures[name] -= 1
            raise MemberAddFailure(file_path, "not ready")
        ref = MemberRef(full_name=str(file_path), name=Path(file_path).stem)
        self.members.append(ref)
        self.added_paths.append(Path(file_path))
        return ref

    def save(self, session, destination):
        self.calls["save"] += 1
        if self.save_failures > 0:
            self.save_failures -= 1
            raise AutomationError("save rejected")
        self.saved_to.append(Path(destination))

    def close(self, session):
        self.calls["close"] += 1
        if self.close_failures > 0:
            self.close_failures -= 1
            raise AutomationError("close rejected")
        self.closed = True


@pytest.fixture
def make_fake():
    return FakeAutomation


@pytest.fixture
def workspace(tmp_path):
    """Root folder with two projects and a stray file; solution path next to it (not created)."""
    root = tmp_path / "src"
    root.mkdir()
    (root / "A.csproj").write_text("<Project />")
    (root / "B.vbproj").write_text("<Project />")
    (root / "C.txt").write_text("notes")

    class Workspace:
        def __init__(self):
            self.tmp = tmp_path
            self.root = root
            self.solution = tmp_path / "App.sln"

        def write_solution(self, *project_paths):
            lines = [
                "Microsoft Visual Studio Solution File, Format Version 12.00",
                "# Visual Studio 14",
            ]
            for i, rel in enumerate(project_paths):
                name = rel.replace("/", "\\").split("\\")[-1].rsplit(".", 1)[0]
                lines.append(
                    f'Project("{{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}}") = "{name}", "{rel}", '
                    f'"{{00000000-0000-0000-0000-00000000000{i}}}"'
                )
                lines.append("EndProject")
            lines += ["Global", "EndGlobal"]
            self.solution.write_text("\r\n".join(lines) + "\r\n", encoding="utf-8")
            return self.solution

    return Workspace()


@pytest.fixture
def log_lines():
    lines = []

    def log(fmt, *args):
        lines.append(fmt.format(*args) if args else fmt)

    log.lines = lines
    return log


@pytest.fixture
def gate():
    return threading.Event()
