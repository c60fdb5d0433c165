"""Tests for two-phase reconciliation plans."""

import logging

import pytest
from module_lifecycle import MissingPathError
from module_lifecycle import ModuleManifest
from module_lifecycle.plan import ReconciliationPlan
from module_lifecycle.plan import apply_plan
from module_lifecycle.plan import build_plan
from module_lifecycle.plan import plan_copies
from module_lifecycle.plan import plan_deletes


def _manifest(include, exclude=None, version="0.2.0") -> ModuleManifest:
    return ModuleManifest.model_validate(
        {"name": "sample", "version": version, "include": include, "exclude": exclude or []}
    )


def test_plan_copies_expands_directories(tmp_path, write_file):
    """Test directory entries become one copy per file."""
    write_file(tmp_path, "modules/sample/lib/a.ps1", "a")
    write_file(tmp_path, "modules/sample/lib/b.ps1", "b")
    write_file(tmp_path, "modules/sample/module.manifest.json", "{}")

    copies = plan_copies(_manifest(["modules/sample/module.manifest.json", "modules/sample/lib"]), tmp_path)

    assert [op.target for op in copies] == [
        "modules/sample/lib/a.ps1",
        "modules/sample/lib/b.ps1",
        "modules/sample/module.manifest.json",
    ]
    assert copies[0].source == tmp_path / "modules/sample/lib/a.ps1"


def test_plan_copies_ignores_absent_excludes(tmp_path, write_file, caplog):
    """Test excluded entries need not exist in the staging root, and their absence is logged."""
    write_file(tmp_path, "modules/sample/a.ps1", "a")
    caplog.set_level(logging.DEBUG, logger="module_lifecycle.plan")

    settings = "modules/sample/local.settings.json"

    copies = plan_copies(_manifest(["modules/sample/a.ps1", settings], [settings]), tmp_path)

    assert [op.target for op in copies] == ["modules/sample/a.ps1"]
    assert f"Excluded path absent from {tmp_path}: {settings}" in caplog.text


def test_plan_copies_missing_source(tmp_path, write_file):
    """Test a missing include entry fails planning."""
    write_file(tmp_path, "modules/sample/a.ps1", "a")

    with pytest.raises(MissingPathError) as exc_info:
        plan_copies(_manifest(["modules/sample/a.ps1", "modules/sample/b.ps1"]), tmp_path)

    assert exc_info.value.path == "modules/sample/b.ps1"


def test_plan_copies_flat_fallback(tmp_path, write_file):
    """Test legacy flat archives supply files from the staging root."""
    write_file(tmp_path, ".tasks.ps1", "flat task")

    copies = plan_copies(_manifest(["modules/sample/.tasks.ps1"]), tmp_path, flat_fallback=True)

    assert copies[0].source == tmp_path / ".tasks.ps1"
    assert copies[0].target == "modules/sample/.tasks.ps1"

    with pytest.raises(MissingPathError):
        plan_copies(_manifest(["modules/sample/.tasks.ps1"]), tmp_path)


def test_plan_deletes_leaves_excluded_files(tmp_path, write_file):
    """Test local files excluded by the manifest survive removal."""
    write_file(tmp_path, "modules/sample/a.ps1", "a")
    write_file(tmp_path, "modules/sample/local.settings.json", "{}")

    deletes = plan_deletes(_manifest(["modules/sample"], ["modules/sample/local.settings.json"]), tmp_path)

    assert deletes == ["modules/sample/a.ps1"]


def test_plan_deletes_skips_missing(tmp_path, write_file):
    """Test already-absent installed paths are not an error."""
    write_file(tmp_path, "modules/sample/a.ps1", "a")

    deletes = plan_deletes(_manifest(["modules/sample/a.ps1", "modules/sample/gone.ps1"]), tmp_path)

    assert deletes == ["modules/sample/a.ps1"]


def test_apply_plan_deletes_before_copies(workspace, tmp_path, write_file, monkeypatch):
    """Test every delete is applied before the first copy."""
    write_file(workspace.root, "modules/sample/old.ps1", "old")
    staging = tmp_path / "staging"
    write_file(staging, "modules/sample/new.ps1", "new")

    plan = build_plan(
        _manifest(["modules/sample/new.ps1"], version="0.3.0"),
        staging,
        _manifest(["modules/sample/old.ps1"]),
        workspace,
    )
    events = []
    original_delete = workspace.delete_file
    original_copy = workspace.copy_file
    monkeypatch.setattr(workspace, "delete_file", lambda rel: (events.append(("delete", rel)), original_delete(rel)))
    monkeypatch.setattr(
        workspace, "copy_file", lambda src, rel: (events.append(("copy", rel)), original_copy(src, rel))
    )

    apply_plan(plan, workspace)

    assert events == [("delete", "modules/sample/old.ps1"), ("copy", "modules/sample/new.ps1")]
    assert not (workspace.root / "modules/sample/old.ps1").exists()
    assert (workspace.root / "modules/sample/new.ps1").read_text() == "new"


def test_empty_plan():
    """Test the default plan does nothing."""
    plan = ReconciliationPlan()

    assert plan.deletes == []
    assert plan.copied_paths == []
