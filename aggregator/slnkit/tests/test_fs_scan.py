import pytest

from aggregator.slnkit.core.errors import PathNotFound
from aggregator.slnkit.core.fs_scan import CandidateMember, collect_candidates, normalize_extensions


def test_only_project_files_are_collected(workspace):
    found = collect_candidates(workspace.root)
    assert [c.name for c in found] == ["A.csproj", "B.vbproj"]


def test_candidate_attributes(workspace):
    a = collect_candidates(workspace.root)[0]
    assert a.full_path == (workspace.root / "A.csproj").resolve()
    assert a.directory == workspace.root.resolve()
    with pytest.raises(AttributeError):
        a.name = "changed"


def test_no_recursion(workspace):
    nested = workspace.root / "nested"
    nested.mkdir()
    (nested / "Deep.csproj").write_text("<Project />")
    assert "Deep.csproj" not in [c.name for c in collect_candidates(workspace.root)]


def test_extension_match_is_case_sensitive(workspace):
    (workspace.root / "Upper.CSPROJ").write_text("")
    assert "Upper.CSPROJ" not in [c.name for c in collect_candidates(workspace.root)]


def test_directories_named_like_projects_are_skipped(workspace):
    (workspace.root / "Weird.csproj").mkdir()
    assert "Weird.csproj" not in [c.name for c in collect_candidates(workspace.root)]


def test_custom_allow_list(workspace):
    (workspace.root / "D.fsproj").write_text("")
    found = collect_candidates(workspace.root, (".fsproj",))
    assert [c.name for c in found] == ["D.fsproj"]


def test_missing_root_raises(tmp_path):
    with pytest.raises(PathNotFound):
        collect_candidates(tmp_path / "absent")


def test_file_as_root_raises(workspace):
    with pytest.raises(PathNotFound):
        collect_candidates(workspace.root / "A.csproj")


def test_normalize_extensions():
    assert normalize_extensions("csproj, .vbproj,") == (".csproj", ".vbproj")
    assert normalize_extensions(None) == (".csproj", ".vbproj")
    assert normalize_extensions([".fsproj", "fsproj"]) == (".fsproj",)


def test_from_path(tmp_path):
    c = CandidateMember.from_path(tmp_path / "X.csproj")
    assert c.name == "X.csproj"
    assert c.directory == tmp_path
