"""Shared fixtures: repository workspaces, manifests and fake collaborators."""

import json
import shutil
from pathlib import Path

import pytest
from module_lifecycle import CallbackResult
from module_lifecycle import FetchError
from module_lifecycle import Workspace

REMOTE_URL = "https://example.com/org/automation-modules.git"


def _write_file(root: Path, relative: str, content: str = "") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def _write_manifest(
    root: Path,
    relative_dir: str,
    name: str,
    version: str,
    include: list[str],
    filename: str = "module.manifest.json",
    **extra,
) -> Path:
    data = {"name": name, "version": version, "description": f"{name} for tests", "include": include, **extra}
    return _write_file(root, f"{relative_dir}/{filename}", json.dumps(data, indent=2))


class FakeGitClient:
    """Serves fixture trees as checkouts, keyed by (url, ref)."""

    def __init__(self):
        self.repositories: dict[tuple[str, str], Path] = {}
        self.calls: list[tuple[str, str]] = []

    def publish(self, url: str, ref: str, tree: Path) -> None:
        self.repositories[(url, ref)] = tree

    async def clone(self, url: str, ref: str, target_dir: Path) -> None:
        self.calls.append((url, ref))
        tree = self.repositories.get((url, ref))
        if tree is None:
            raise FetchError(url, ref, f"Remote branch {ref} not found in upstream origin")
        shutil.copytree(tree, target_dir)


class RecordingCallback:
    """Records callback invocations and the files present when each ran."""

    def __init__(self, result_status: str = "invoked", raises: Exception | None = None):
        self.result_status = result_status
        self.raises = raises
        self.invocations: list[tuple[str, Path, bool]] = []

    async def try_invoke(self, name: str, enabler_dir: Path) -> CallbackResult:
        self.invocations.append((name, enabler_dir, enabler_dir.exists()))
        if self.raises is not None:
            raise self.raises
        if self.result_status == "failed":
            return CallbackResult.failed(name, "exit code 1")
        return CallbackResult.invoked(name)


@pytest.fixture
def write_file():
    return _write_file


@pytest.fixture
def write_manifest():
    return _write_manifest


@pytest.fixture
def repo(tmp_path):
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def workspace(repo):
    return Workspace(repo)


@pytest.fixture
def fake_git():
    return FakeGitClient()


@pytest.fixture
def callback():
    return RecordingCallback()


@pytest.fixture
def make_callback():
    return RecordingCallback


@pytest.fixture
def isolated_tempdir(tmp_path, monkeypatch):
    """Route staging directories into a directory the test can inspect."""
    import tempfile

    staging_parent = tmp_path / "tmp"
    staging_parent.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(staging_parent))
    return staging_parent


@pytest.fixture
def publish(tmp_path, fake_git):
    """Publish a module or enabler tree on the fake remote.

    Returns a factory: publish(version, files, ...) -> tree root.
    """

    def _publish(
        version: str,
        files: dict[str, str],
        name: str = "sample",
        url: str = REMOTE_URL,
        tag: str | None = None,
        container: str = "modules",
        manifest_filename: str = "module.manifest.json",
        include: list[str] | None = None,
        **extra,
    ) -> Path:
        tree = tmp_path / "remotes" / f"{name}-{version}-{len(fake_git.repositories)}"
        manifest_rel = f"{container}/{name}/{manifest_filename}"
        for relative, content in files.items():
            _write_file(tree, relative, content)
        if include is None:
            include = sorted([*files, manifest_rel])
        _write_manifest(tree, f"{container}/{name}", name, version, include, filename=manifest_filename, **extra)
        fake_git.publish(url, tag if tag is not None else f"v{version}", tree)
        return tree

    return _publish
