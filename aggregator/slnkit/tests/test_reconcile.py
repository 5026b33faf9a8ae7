from pathlib import Path

import pytest

from aggregator.slnkit.adapters.automation import KIND_FOLDER, HostVersion, MemberRef
from aggregator.slnkit.adapters.solution_file import SolutionFileAutomation
from aggregator.slnkit.core import reconcile as rc
from aggregator.slnkit.core.errors import AutomationError, PathNotFound
from aggregator.slnkit.core.fs_scan import CandidateMember, collect_candidates
from aggregator.slnkit.core.manifest_scan import extract_member_identifiers
from aggregator.slnkit.core.reconcile import ReconcileResult, SolutionReconciler, compute_missing, find_missing


def _reconciler(workspace, automation, log=None, **kw):
    kw.setdefault("sleep", lambda _: None)
    return SolutionReconciler(workspace.solution, automation, log=log, **kw)


def test_compute_missing_by_file_name(workspace):
    candidates = collect_candidates(workspace.root)
    missing = compute_missing({"A.csproj"}, candidates)
    assert [c.name for c in missing] == ["B.vbproj"]


def test_find_missing_without_solution_lists_everything(workspace):
    assert [c.name for c in find_missing(workspace.solution, workspace.root)] == ["A.csproj", "B.vbproj"]


def test_complete_solution_is_a_noop(workspace, make_fake, log_lines):
    workspace.write_solution("src\\A.csproj", "src\\B.vbproj")
    fake = make_fake()
    r = _reconciler(workspace, fake, log=log_lines)

    assert r.reconcile(workspace.root) is False
    assert fake.calls["open"] == 0
    assert sum(fake.calls.values()) == 0
    assert log_lines.lines == []
    assert r.state == rc.NOOP_DONE
    assert r.last_result.missing == []


def test_missing_members_are_added_once(workspace, make_fake, log_lines):
    workspace.write_solution("src\\A.csproj")
    fake = make_fake()
    r = _reconciler(workspace, fake, log=log_lines)

    assert r.reconcile(workspace.root) is True
    assert [p.name for p in fake.added_paths] == ["B.vbproj"]
    # roster suppresses re-adding over the remaining passes
    assert fake.calls["add"] == 1
    assert log_lines.lines == ["B.vbproj"]
    assert fake.saved_to == [workspace.solution]
    assert fake.closed
    assert r.state == rc.DONE
    assert not r.is_open
    assert r.last_result.passes_run == 15


def test_member_that_succeeds_late_is_added(workspace, make_fake, log_lines):
    fake = make_fake(add_failures={"A.csproj": 3})
    r = _reconciler(workspace, fake, log=log_lines)

    assert r.reconcile(workspace.root)
    assert sorted(p.name for p in fake.added_paths) == ["A.csproj", "B.vbproj"]
    # 4 tries for A, 1 for B
    assert fake.calls["add"] == 5
    assert r.last_result.failed == []


def test_permanent_failure_is_reported_and_does_not_stop_others(workspace, make_fake, log_lines):
    fake = make_fake(never_add={"A.csproj"})
    r = _reconciler(workspace, fake, log=log_lines, passes=4)

    assert r.reconcile(workspace.root) is True
    assert [p.name for p in fake.added_paths] == ["B.vbproj"]
    assert fake.calls["add"] == 4 + 1
    assert [c.name for c in r.last_result.failed] == ["A.csproj"]
    assert "Failed to add: A.csproj" in log_lines.lines
    assert fake.calls["save"] == 1


def test_stop_on_convergence_ends_after_quiet_pass(workspace, make_fake):
    fake = make_fake(never_add={"A.csproj"})
    r = _reconciler(workspace, fake, stop_on_convergence=True)
    r.reconcile(workspace.root)
    # pass 1 adds B, pass 2 adds nothing
    assert r.last_result.passes_run == 2
    assert fake.calls["add"] == 3


def test_stop_on_convergence_when_everything_added(workspace, make_fake):
    fake = make_fake()
    r = _reconciler(workspace, fake, stop_on_convergence=True)
    r.reconcile(workspace.root)
    assert r.last_result.passes_run == 1


def test_members_known_to_host_are_not_resubmitted(workspace, make_fake):
    # the scanner cannot see B (e.g. nested in a folder the text heuristic misses)
    b_path = str((workspace.root / "B.vbproj").resolve())
    folder = MemberRef(full_name="Libs", kind=KIND_FOLDER, children=[MemberRef(full_name=b_path, name="B")])
    fake = make_fake(existing=[folder])
    r = _reconciler(workspace, fake)

    assert r.reconcile(workspace.root)
    assert [p.name for p in fake.added_paths] == ["A.csproj"]
    assert r.last_result.failed == []


def test_open_is_retried(workspace, make_fake):
    fake = make_fake(open_failures=2)
    pauses = []
    r = _reconciler(workspace, fake, retry_delay=1.5, sleep=pauses.append)
    assert r.reconcile(workspace.root)
    assert fake.calls["open"] == 3
    assert fake.calls["enumerate"] == 1
    assert pauses == [1.5, 1.5]


def test_save_failure_propagates_after_budget(workspace, make_fake):
    fake = make_fake(save_failures=100)
    r = _reconciler(workspace, fake, attempts=2)
    with pytest.raises(AutomationError):
        r.reconcile(workspace.root)
    assert fake.calls["save"] == 3
    assert fake.calls["close"] == 0
    assert r.is_open


def test_close_is_idempotent(workspace, make_fake):
    fake = make_fake()
    r = _reconciler(workspace, fake)
    r.close()
    assert fake.calls["close"] == 0
    r.reconcile(workspace.root)
    r.close()
    assert fake.calls["close"] == 1


def test_missing_root_fails_before_session(workspace, make_fake):
    fake = make_fake()
    r = _reconciler(workspace, fake)
    with pytest.raises(PathNotFound):
        r.reconcile(workspace.tmp / "absent")
    assert fake.calls["open"] == 0


def test_missing_solution_folder_fails_before_session(workspace, make_fake):
    fake = make_fake()
    r = SolutionReconciler(workspace.tmp / "nowhere" / "App.sln", fake)
    with pytest.raises(PathNotFound):
        r.reconcile(workspace.root)
    assert fake.calls["open"] == 0


def test_host_version_is_passed_to_host(workspace, make_fake):
    fake = make_fake()
    seen = []
    original = fake.open_or_attach

    def spy(version, path):
        seen.append(version)
        return original(version, path)

    fake.open_or_attach = spy
    _reconciler(workspace, fake, host_version="VS2013").reconcile(workspace.root)
    assert seen == [HostVersion.VS2013]


def test_second_run_is_noop_with_text_host(workspace):
    host = SolutionFileAutomation()
    assert _reconciler(workspace, host).reconcile(workspace.root) is True
    assert extract_member_identifiers(workspace.solution) >= {"A.csproj", "B.vbproj"}
    assert _reconciler(workspace, host).reconcile(workspace.root) is False


def test_existing_entries_survive(workspace):
    workspace.write_solution("src\\A.csproj")
    before = workspace.solution.read_text(encoding="utf-8-sig")
    _reconciler(workspace, SolutionFileAutomation()).reconcile(workspace.root)
    after = workspace.solution.read_text(encoding="utf-8-sig")
    assert after.count("A.csproj") == before.count("A.csproj") == 1
    assert "src\\B.vbproj" in after


def test_result_changed_flag():
    assert not ReconcileResult().changed
    assert ReconcileResult(missing=[CandidateMember.from_path(Path("x.csproj"))]).changed
