"""Workspace capability - The repository working tree operations act on.

Operations receive a Workspace instead of reaching for a process-wide
repository root, so they can run against any directory (including a test's
temp directory). Layout (directory names, manifest filenames) is injected
policy.
"""

import logging
import shutil
from enum import Enum
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict

from .archive import LEGACY_ARCHIVE_STEM
from .schema import DEFAULT_TAG_PREFIX
from .schema import ModuleManifest
from .utils import normalize_manifest_path

logger = logging.getLogger(__name__)


class ArtifactKind(str, Enum):
    """Kinds of manifest-described artifacts."""

    MODULE = "module"
    ENABLER = "enabler"


class WorkspaceLayout(BaseModel):
    """
    Repository layout conventions.

    Defaults:
        modules/<name>/module.manifest.json
        enablers/<name>/enabler.manifest.json
        dist/<name>/<name>.<version>.zip
    """

    model_config = ConfigDict(frozen=True)

    modules_dir: str = "modules"
    enablers_dir: str = "enablers"
    dist_dir: str = "dist"
    module_manifest: str = "module.manifest.json"
    enabler_manifest: str = "enabler.manifest.json"
    default_tag_prefix: str = DEFAULT_TAG_PREFIX
    legacy_archive_stem: str = LEGACY_ARCHIVE_STEM

    def container_dir(self, kind: ArtifactKind) -> str:
        return self.modules_dir if kind is ArtifactKind.MODULE else self.enablers_dir

    def manifest_filename(self, kind: ArtifactKind) -> str:
        return self.module_manifest if kind is ArtifactKind.MODULE else self.enabler_manifest


class Workspace:
    """
    Repository root plus the read/write/delete primitives operations use.

    Example:
        >>> workspace = Workspace(Path.cwd())
        >>> workspace.manifest_path(ArtifactKind.MODULE, "sample")
        PosixPath('.../modules/sample/module.manifest.json')
    """

    def __init__(self, root: Path, layout: WorkspaceLayout | None = None):
        """Initialize with the repository root and optional layout overrides.

        Args:
            root: Repository root (app determines location)
            layout: Directory and filename conventions (defaults if omitted)
        """
        self.root = root
        self.layout = layout or WorkspaceLayout()

    def artifact_relpath(self, kind: ArtifactKind, name: str) -> str:
        """Repository-relative directory of an artifact (e.g., "modules/sample")."""
        return f"{self.layout.container_dir(kind)}/{name}"

    def artifact_dir(self, kind: ArtifactKind, name: str) -> Path:
        return self.root / self.artifact_relpath(kind, name)

    def manifest_path(self, kind: ArtifactKind, name: str) -> Path:
        return self.artifact_dir(kind, name) / self.layout.manifest_filename(kind)

    def dist_dir(self, name: str) -> Path:
        return self.root / self.layout.dist_dir / name

    def load_manifest(self, kind: ArtifactKind, name: str) -> ModuleManifest | None:
        """
        Load the installed manifest for an artifact.

        Returns:
            ModuleManifest, or None if no manifest is installed

        Raises:
            ManifestValidationError: If the installed manifest is malformed
        """
        manifest_path = self.manifest_path(kind, name)
        if not manifest_path.is_file():
            return None
        return ModuleManifest.from_file(manifest_path)

    def path(self, relative: str) -> Path:
        """Absolute path for a repository-relative manifest path."""
        return self.root / normalize_manifest_path(relative)

    def exists(self, relative: str) -> bool:
        return self.path(relative).exists()

    def copy_file(self, source: Path, relative: str) -> None:
        """Copy ``source`` to ``relative``, creating parent directories."""
        target = self.path(relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        logger.debug(f"Copied {source} -> {relative}")

    def delete_file(self, relative: str) -> None:
        """Delete a file and prune the directories it leaves empty."""
        target = self.path(relative)
        if not target.exists():
            logger.debug(f"Already absent: {relative}")
            return
        target.unlink()
        logger.debug(f"Deleted {relative}")
        self.prune_empty_parents(relative)

    def prune_empty_parents(self, relative: str) -> None:
        """Remove empty ancestors of ``relative``.

        Stops at the repository root and at the top-level layout directories
        (``modules``, ``enablers``, ``dist``), which are never removed.
        """
        keep = {self.layout.modules_dir, self.layout.enablers_dir, self.layout.dist_dir}
        parent = self.path(relative).parent
        while parent != self.root and parent.relative_to(self.root).as_posix() not in keep:
            if not parent.is_dir() or any(parent.iterdir()):
                break
            parent.rmdir()
            logger.debug(f"Pruned empty directory {parent.relative_to(self.root).as_posix()}")
            parent = parent.parent

    def prune_empty_dir(self, relative: str) -> bool:
        """
        Remove empty subdirectories of ``relative`` bottom-up, then the directory itself if empty.

        Returns:
            True if the directory no longer exists
        """
        directory = self.path(relative)
        if not directory.is_dir():
            return True

        for sub in sorted((p for p in directory.rglob("*") if p.is_dir()), key=lambda p: len(p.parts), reverse=True):
            if not any(sub.iterdir()):
                sub.rmdir()

        if any(directory.iterdir()):
            logger.debug(f"Keeping non-empty directory {relative}")
            return False

        directory.rmdir()
        logger.debug(f"Pruned empty directory {relative}")
        return True
