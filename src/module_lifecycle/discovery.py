"""Installed artifact discovery - Convention over configuration.

An artifact is installed when ``<container>/<name>/<manifest filename>``
exists. There is no separate registry: the manifest is the record.
"""

import logging

from pydantic import BaseModel
from pydantic import ConfigDict

from .exceptions import ModuleError
from .schema import ModuleManifest
from .workspace import ArtifactKind
from .workspace import Workspace

logger = logging.getLogger(__name__)


class InstalledArtifact(BaseModel):
    """An installed module or enabler (immutable data structure)."""

    model_config = ConfigDict(frozen=True)

    kind: ArtifactKind
    name: str
    version: str
    manifest: ModuleManifest


def list_installed(workspace: Workspace, kind: ArtifactKind) -> list[InstalledArtifact]:
    """
    Discover installed artifacts of one kind.

    Directories without a manifest are ignored; unreadable manifests are
    skipped.

    Returns:
        Installed artifacts sorted by directory name

    Example:
        >>> for artifact in list_installed(workspace, ArtifactKind.MODULE):
        ...     print(f"{artifact.name} {artifact.version}")
    """
    container = workspace.root / workspace.layout.container_dir(kind)
    if not container.is_dir():
        return []

    installed = []
    for directory in sorted(container.iterdir(), key=lambda p: p.name):
        if not directory.is_dir() or directory.name.startswith("."):
            continue

        try:
            manifest = workspace.load_manifest(kind, directory.name)
        except (ModuleError, OSError) as e:
            logger.debug(f"Could not read {kind.value} manifest in {directory}: {e}")
            continue

        if manifest is None:
            continue

        installed.append(
            InstalledArtifact(kind=kind, name=directory.name, version=manifest.version, manifest=manifest)
        )

    return installed


def list_modules(workspace: Workspace) -> list[str]:
    """
    List installed module names (helper).

    Example:
        >>> list_modules(workspace)
        ['sample', 'telemetry']
    """
    return [artifact.name for artifact in list_installed(workspace, ArtifactKind.MODULE)]


def list_enablers(workspace: Workspace) -> list[str]:
    """List installed enabler names (helper)."""
    return [artifact.name for artifact in list_installed(workspace, ArtifactKind.ENABLER)]
