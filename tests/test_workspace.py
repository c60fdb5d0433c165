"""Tests for the Workspace capability."""

import pytest
from module_lifecycle import ArtifactKind
from module_lifecycle import ManifestValidationError
from module_lifecycle import Workspace
from module_lifecycle import WorkspaceLayout


def test_default_layout_paths(repo):
    """Test conventional locations."""
    workspace = Workspace(repo)

    assert workspace.manifest_path(ArtifactKind.MODULE, "sample") == repo / "modules/sample/module.manifest.json"
    assert workspace.manifest_path(ArtifactKind.ENABLER, "lint") == repo / "enablers/lint/enabler.manifest.json"
    assert workspace.dist_dir("sample") == repo / "dist" / "sample"
    assert workspace.artifact_relpath(ArtifactKind.MODULE, "sample") == "modules/sample"


def test_custom_layout(repo):
    """Test layout is injected policy."""
    layout = WorkspaceLayout(modules_dir="automation", module_manifest="manifest.json", dist_dir="out")
    workspace = Workspace(repo, layout=layout)

    assert workspace.manifest_path(ArtifactKind.MODULE, "sample") == repo / "automation/sample/manifest.json"
    assert workspace.dist_dir("sample") == repo / "out" / "sample"


def test_load_manifest(workspace, write_manifest):
    """Test installed manifests load and absent ones return None."""
    write_manifest(workspace.root, "modules/sample", "sample", "0.2.0", ["modules/sample/module.manifest.json"])

    manifest = workspace.load_manifest(ArtifactKind.MODULE, "sample")

    assert manifest is not None
    assert manifest.version == "0.2.0"
    assert workspace.load_manifest(ArtifactKind.MODULE, "missing") is None


def test_copy_file_creates_parents(workspace, tmp_path):
    """Test copies create intermediate directories."""
    source = tmp_path / "source.txt"
    source.write_text("content")

    workspace.copy_file(source, "modules/sample/lib/source.txt")

    assert (workspace.root / "modules/sample/lib/source.txt").read_text() == "content"


def test_delete_file_prunes_empty_parents(workspace, write_file):
    """Test deleting the last file removes its empty directories but keeps modules/."""
    write_file(workspace.root, "modules/sample/lib/a.ps1", "a")

    workspace.delete_file("modules/sample/lib/a.ps1")

    assert not (workspace.root / "modules" / "sample").exists()
    assert (workspace.root / "modules").is_dir()


def test_delete_file_keeps_non_empty_parents(workspace, write_file):
    """Test directories with remaining content survive."""
    write_file(workspace.root, "modules/sample/a.ps1", "a")
    write_file(workspace.root, "modules/sample/local.settings.json", "{}")

    workspace.delete_file("modules/sample/a.ps1")

    assert (workspace.root / "modules/sample/local.settings.json").exists()


def test_delete_missing_file_is_noop(workspace):
    """Test deleting an absent file does nothing."""
    workspace.delete_file("modules/sample/missing.ps1")


def test_prune_empty_dir(workspace):
    """Test nested empty directories are removed bottom-up."""
    (workspace.root / "modules/sample/a/b").mkdir(parents=True)

    assert workspace.prune_empty_dir("modules/sample") is True
    assert not (workspace.root / "modules/sample").exists()


def test_prune_keeps_non_empty_dir(workspace, write_file):
    """Test directories holding files are kept."""
    write_file(workspace.root, "modules/sample/keep.txt", "keep")
    (workspace.root / "modules/sample/empty").mkdir()

    assert workspace.prune_empty_dir("modules/sample") is False
    assert not (workspace.root / "modules/sample/empty").exists()
    assert (workspace.root / "modules/sample/keep.txt").exists()


def test_paths_must_stay_inside_root(workspace):
    """Test workspace primitives refuse paths outside the repository."""
    with pytest.raises(ManifestValidationError):
        workspace.delete_file("../outside.txt")
