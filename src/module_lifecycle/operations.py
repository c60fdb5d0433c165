"""Reconciliation engine - Module and enabler lifecycle operations.

Every operation follows the same shape:

1. Check preconditions (before any mutation)
2. Produce a staging root (remote fetch or archive expansion), if needed
3. Locate and read the manifest inside it
4. Plan deletes and copies, validating every copy source
5. Apply deletes, then copies
6. Remove the staging root, on every exit path

Collaborators are injected: apps provide the Workspace, a source-control
client (GitClient by default) and an enabler callback runner
(TaskFileCallback by default).
"""

import logging
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .archive import archive_filename
from .archive import find_archive
from .archive import remove_stale_archives
from .archive import unpack_archive
from .archive import write_archive
from .callbacks import CallbackResult
from .callbacks import CallbackStatus
from .callbacks import TaskFileCallback
from .exceptions import ManifestNotFoundError
from .exceptions import ManifestValidationError
from .exceptions import ModuleError
from .exceptions import PreconditionError
from .fetcher import RemoteReference
from .fetcher import fetch
from .locator import LocatedManifest
from .locator import locate_manifest
from .pathset import resolve_path_set
from .plan import ReconciliationPlan
from .plan import apply_plan
from .plan import build_plan
from .protocols import CallbackProtocol
from .protocols import SourceControlProtocol
from .schema import ModuleManifest
from .sources import GitClient
from .staging import staging_directory
from .validation import ensure_valid
from .workspace import ArtifactKind
from .workspace import Workspace

logger = logging.getLogger(__name__)


class OperationResult(BaseModel):
    """Outcome of a lifecycle operation."""

    model_config = ConfigDict(frozen=True)

    operation: str
    kind: ArtifactKind
    name: str
    version: str | None = None
    written: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    archive: Path | None = None
    callback: CallbackResult | None = None


# ---------------------------------------------------------------------------
# Shared steps
# ---------------------------------------------------------------------------


def _require_installed(workspace: Workspace, kind: ArtifactKind, name: str) -> ModuleManifest:
    """Load the installed manifest or fail before anything is touched."""
    manifest = workspace.load_manifest(kind, name)
    if manifest is None:
        manifest_path = workspace.manifest_path(kind, name)
        raise PreconditionError(
            f"No {kind.value} manifest found at {manifest_path}",
            context={"kind": kind.value, "name": name, "manifest_path": str(manifest_path)},
        )
    return manifest


def _require_absent(workspace: Workspace, kind: ArtifactKind, name: str) -> None:
    target = workspace.artifact_dir(kind, name)
    if target.exists():
        raise PreconditionError(
            f"{kind.value.capitalize()} directory already exists: {target}",
            context={"kind": kind.value, "name": name, "target_dir": str(target)},
        )


def _require_copies(plan: ReconciliationPlan, manifest: ModuleManifest) -> None:
    if not plan.copies:
        raise ManifestValidationError(
            f"Manifest '{manifest.name}' version '{manifest.version}' includes no files",
            context={"name": manifest.name, "version": manifest.version},
        )


def _repository_url(
    installed: ModuleManifest,
    repository_url: str | None,
    kind: ArtifactKind,
    name: str,
) -> str:
    """Explicit override wins, then the manifest's ``source.git``."""
    if repository_url:
        return repository_url
    if installed.source is not None and installed.source.git:
        return installed.source.git
    raise PreconditionError(
        f"No repository URL for {kind.value} '{name}': pass one explicitly or declare source.git",
        context={"kind": kind.value, "name": name},
    )


async def _fetch_manifest(
    workspace: Workspace,
    kind: ArtifactKind,
    name: str,
    version: str,
    reference: RemoteReference,
    client: SourceControlProtocol,
    staging: Path,
) -> tuple[Path, LocatedManifest]:
    checkout = await fetch(reference, staging, client)
    located = locate_manifest(
        checkout,
        expected_name=name,
        expected_version=version,
        manifest_filename=workspace.layout.manifest_filename(kind),
        origin=reference.url,
    )
    return checkout, located


async def _install_from_remote(
    operation: str,
    workspace: Workspace,
    kind: ArtifactKind,
    name: str,
    version: str,
    repository_url: str,
    tag_prefix: str | None,
    client: SourceControlProtocol | None,
) -> OperationResult:
    _require_absent(workspace, kind, name)

    prefix = tag_prefix if tag_prefix is not None else workspace.layout.default_tag_prefix
    reference = RemoteReference(url=repository_url, version=version, tag_prefix=prefix)

    with staging_directory() as staging:
        checkout, located = await _fetch_manifest(
            workspace, kind, name, version, reference, client or GitClient(), staging
        )
        plan = build_plan(located.manifest, checkout, None, workspace)
        _require_copies(plan, located.manifest)
        apply_plan(plan, workspace)

    return OperationResult(
        operation=operation,
        kind=kind,
        name=name,
        version=located.manifest.version,
        written=plan.copied_paths,
    )


async def _update_from_remote(
    operation: str,
    workspace: Workspace,
    kind: ArtifactKind,
    name: str,
    version: str,
    repository_url: str | None,
    tag_prefix: str | None,
    client: SourceControlProtocol | None,
) -> OperationResult:
    installed = _require_installed(workspace, kind, name)
    url = _repository_url(installed, repository_url, kind, name)
    prefix = tag_prefix if tag_prefix is not None else installed.tag_prefix(workspace.layout.default_tag_prefix)
    reference = RemoteReference(url=url, version=version, tag_prefix=prefix)

    logger.info(f"Updating {kind.value} '{name}' from {installed.version} to {version}")
    with staging_directory() as staging:
        checkout, located = await _fetch_manifest(
            workspace, kind, name, version, reference, client or GitClient(), staging
        )
        # Both halves are planned (and copy sources checked) before anything is deleted
        plan = build_plan(located.manifest, checkout, installed, workspace)
        _require_copies(plan, located.manifest)
        apply_plan(plan, workspace)
        workspace.prune_empty_dir(workspace.artifact_relpath(kind, name))

    return OperationResult(
        operation=operation,
        kind=kind,
        name=name,
        version=located.manifest.version,
        written=plan.copied_paths,
        deleted=plan.deletes,
    )


def _remove_installed(
    operation: str,
    workspace: Workspace,
    kind: ArtifactKind,
    installed: ModuleManifest,
    name: str,
) -> OperationResult:
    plan = build_plan(None, None, installed, workspace)
    apply_plan(plan, workspace)
    workspace.prune_empty_dir(workspace.artifact_relpath(kind, name))

    return OperationResult(
        operation=operation,
        kind=kind,
        name=name,
        version=installed.version,
        deleted=plan.deletes,
    )


async def _run_callback(callback: CallbackProtocol, callback_name: str, enabler_dir: Path) -> CallbackResult:
    """Invoke an enabler callback. Failures are logged, never raised."""
    try:
        result = await callback.try_invoke(callback_name, enabler_dir)
    except Exception as e:
        result = CallbackResult.failed(callback_name, str(e))

    if result.status is CallbackStatus.FAILED:
        logger.warning(f"Enabler callback '{callback_name}' failed in {enabler_dir}: {result.detail}")
    elif result.status is CallbackStatus.INVOKED:
        logger.info(f"Enabler callback '{callback_name}' completed")
    return result


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------


def pack_module(workspace: Workspace, name: str, version: str | None = None) -> OperationResult:
    """
    Pack a module into ``dist/<name>/<name>.<version>.zip``.

    Process:
    1. Load and validate ``modules/<name>/module.manifest.json``
    2. Check a supplied version against the manifest
    3. Resolve the path set
    4. Delete the previous and any legacy archive
    5. Write the new archive

    Args:
        workspace: Repository workspace
        name: Module name (its directory name)
        version: Expected version; None packs whatever the manifest declares

    Returns:
        OperationResult with the archive path and packed files

    Raises:
        PreconditionError: If the module has no manifest
        ManifestValidationError: If the manifest is invalid or the version doesn't match
        MissingPathError: If a declared path is missing

    Example:
        >>> result = pack_module(Workspace(Path.cwd()), "sample", "0.2.0")
        >>> result.archive
        PosixPath('.../dist/sample/sample.0.2.0.zip')
    """
    try:
        manifest = _require_installed(workspace, ArtifactKind.MODULE, name)
        ensure_valid(manifest, workspace.root, directory=name)

        if version is not None and version != manifest.version:
            raise ManifestValidationError(
                f"Requested version '{version}' does not match manifest version '{manifest.version}'",
                context={"field": "version", "requested": version, "manifest": manifest.version},
            )

        resolved = resolve_path_set(manifest, workspace.root)
        if not resolved.files:
            raise ManifestValidationError(
                f"Module '{name}' includes no files to pack",
                context={"name": name, "paths": resolved.paths},
            )

        own_path = workspace.artifact_relpath(ArtifactKind.MODULE, name) + "/" + workspace.layout.module_manifest
        if own_path not in resolved.files:
            logger.debug(f"Module '{name}' does not include its own manifest {own_path}")

        dist_dir = workspace.dist_dir(name)
        dist_dir.mkdir(parents=True, exist_ok=True)
        remove_stale_archives(dist_dir, name, manifest.version, workspace.layout.legacy_archive_stem)

        archive_path = write_archive(resolved, dist_dir / archive_filename(name, manifest.version))
        logger.info(f"Packed module '{name}' {manifest.version} ({len(resolved.files)} files) to {archive_path}")

        return OperationResult(
            operation="pack",
            kind=ArtifactKind.MODULE,
            name=name,
            version=manifest.version,
            written=resolved.files,
            archive=archive_path,
        )

    except Exception as e:
        if isinstance(e, ModuleError):
            raise
        raise ModuleError(f"Failed to pack module '{name}': {e}", context={"name": name}) from e


def _archive_manifest(
    workspace: Workspace,
    staging: Path,
    name: str,
    version: str,
    archive_path: Path,
) -> ModuleManifest:
    """Read the manifest from an expanded archive, at its module path or the archive root."""
    filename = workspace.layout.module_manifest
    candidates = [
        staging / workspace.artifact_relpath(ArtifactKind.MODULE, name) / filename,
        staging / filename,
    ]
    for candidate in candidates:
        if not candidate.is_file():
            continue
        manifest = ModuleManifest.from_file(candidate)
        if manifest.name.lower() != name.lower() or manifest.version != version:
            logger.debug(f"Skipping {manifest.name}@{manifest.version} in {archive_path}, expected {name}@{version}")
            continue
        return manifest

    raise ManifestNotFoundError(name, version, str(archive_path))


def unpack_module(workspace: Workspace, name: str, version: str) -> OperationResult:
    """
    Restore a module from its archive in ``dist/<name>/``.

    The archive is expanded into a staging directory; only the paths its
    manifest includes are copied into the repository. A legacy flat archive
    entry (file name at the archive root) stands in for a missing path.

    Raises:
        ArchiveNotFoundError: If no archive exists for the version
        ManifestNotFoundError: If the archive holds no manifest for this name and version
        MissingPathError: If a declared include path is absent from the archive
    """
    try:
        archive_path = find_archive(workspace.dist_dir(name), name, version, workspace.layout.legacy_archive_stem)
        logger.info(f"Unpacking module '{name}' {version} from {archive_path}")

        with staging_directory() as staging:
            unpack_archive(archive_path, staging)
            manifest = _archive_manifest(workspace, staging, name, version, archive_path)
            plan = build_plan(manifest, staging, None, workspace, flat_fallback=True)
            _require_copies(plan, manifest)
            apply_plan(plan, workspace)

        logger.info(f"Unpacked module '{name}' {version} ({len(plan.copies)} files)")
        return OperationResult(
            operation="unpack",
            kind=ArtifactKind.MODULE,
            name=name,
            version=version,
            written=plan.copied_paths,
            archive=archive_path,
        )

    except Exception as e:
        if isinstance(e, ModuleError):
            raise
        raise ModuleError(f"Failed to unpack module '{name}': {e}", context={"name": name}) from e


async def clone_module(
    workspace: Workspace,
    name: str,
    version: str,
    repository_url: str,
    tag_prefix: str | None = None,
    client: SourceControlProtocol | None = None,
) -> OperationResult:
    """
    Clone a module from a git repository at tag ``<tag_prefix><version>``.

    Args:
        workspace: Repository workspace
        name: Module name
        version: Version to fetch
        repository_url: Repository holding the module
        tag_prefix: Tag prefix; None means the layout default ("v"), "" means none
        client: Source-control client (GitClient if omitted)

    Raises:
        PreconditionError: If ``modules/<name>`` already exists
        FetchError: If the clone fails
        ManifestNotFoundError: If no manifest matches name and version
        MissingPathError: If a declared path is missing from the checkout

    Example:
        >>> await clone_module(workspace, "sample", "0.2.0", "https://github.com/org/modules.git")
    """
    try:
        logger.info(f"Cloning module '{name}' {version} from {repository_url}")
        result = await _install_from_remote(
            "clone", workspace, ArtifactKind.MODULE, name, version, repository_url, tag_prefix, client
        )
        logger.info(f"Cloned module '{name}' {version} ({len(result.written)} files)")
        return result

    except Exception as e:
        if isinstance(e, ModuleError):
            raise
        raise ModuleError(f"Failed to clone module '{name}': {e}", context={"name": name}) from e


async def update_module(
    workspace: Workspace,
    name: str,
    version: str,
    repository_url: str | None = None,
    tag_prefix: str | None = None,
    client: SourceControlProtocol | None = None,
) -> OperationResult:
    """
    Replace an installed module's files with those of another version.

    The repository URL comes from ``repository_url`` or the installed
    manifest's ``source.git``; the tag prefix from ``tag_prefix`` or
    ``source.tagPrefix``. Every installed path is deleted before any new path
    is written.

    Raises:
        PreconditionError: If the module isn't installed or has no repository URL
        FetchError: If the clone fails
        ManifestNotFoundError: If the new version's manifest isn't found
        MissingPathError: If a newly declared path is missing from the checkout
    """
    try:
        result = await _update_from_remote(
            "update", workspace, ArtifactKind.MODULE, name, version, repository_url, tag_prefix, client
        )
        logger.info(f"Updated module '{name}' to {version}")
        return result

    except Exception as e:
        if isinstance(e, ModuleError):
            raise
        raise ModuleError(f"Failed to update module '{name}': {e}", context={"name": name}) from e


def remove_module(workspace: Workspace, name: str) -> OperationResult:
    """
    Delete every path the installed module manifest includes, then prune its directory.

    Raises:
        PreconditionError: If the module has no manifest
    """
    try:
        installed = _require_installed(workspace, ArtifactKind.MODULE, name)
        logger.info(f"Removing module '{name}' {installed.version}")
        result = _remove_installed("remove", workspace, ArtifactKind.MODULE, installed, name)
        logger.info(f"Removed module '{name}' ({len(result.deleted)} files)")
        return result

    except Exception as e:
        if isinstance(e, ModuleError):
            raise
        raise ModuleError(f"Failed to remove module '{name}': {e}", context={"name": name}) from e


# ---------------------------------------------------------------------------
# Enablers
# ---------------------------------------------------------------------------


async def install_enabler(
    workspace: Workspace,
    name: str,
    version: str | None = None,
    repository_url: str | None = None,
    tag_prefix: str | None = None,
    client: SourceControlProtocol | None = None,
    callback: CallbackProtocol | None = None,
) -> OperationResult:
    """
    Install an enabler and run its ``install`` callback.

    With ``repository_url`` the enabler is fetched like a module clone (the
    enabler directory must not exist and ``version`` is required). Without
    it, the enabler already in the repository is validated and only the
    callback runs.

    Callback failures are logged and reported in the result; materialized
    files are kept.
    """
    try:
        if repository_url:
            if not version:
                raise PreconditionError(
                    f"A version is required to install enabler '{name}' from {repository_url}",
                    context={"name": name, "repository_url": repository_url},
                )
            logger.info(f"Installing enabler '{name}' {version} from {repository_url}")
            result = await _install_from_remote(
                "install", workspace, ArtifactKind.ENABLER, name, version, repository_url, tag_prefix, client
            )
        else:
            installed = _require_installed(workspace, ArtifactKind.ENABLER, name)
            ensure_valid(installed, workspace.root, directory=name)
            if version is not None and version != installed.version:
                raise ManifestValidationError(
                    f"Requested version '{version}' does not match enabler version '{installed.version}'",
                    context={"field": "version", "requested": version, "manifest": installed.version},
                )
            logger.info(f"Installing enabler '{name}' {installed.version} from the repository")
            result = OperationResult(
                operation="install", kind=ArtifactKind.ENABLER, name=name, version=installed.version
            )

        callback_result = await _run_callback(
            callback or TaskFileCallback(), "install", workspace.artifact_dir(ArtifactKind.ENABLER, name)
        )
        return result.model_copy(update={"callback": callback_result})

    except Exception as e:
        if isinstance(e, ModuleError):
            raise
        raise ModuleError(f"Failed to install enabler '{name}': {e}", context={"name": name}) from e


async def upgrade_enabler(
    workspace: Workspace,
    name: str,
    version: str,
    repository_url: str | None = None,
    tag_prefix: str | None = None,
    client: SourceControlProtocol | None = None,
    callback: CallbackProtocol | None = None,
) -> OperationResult:
    """Update an enabler like ``update_module``, then run its ``upgrade`` callback."""
    try:
        result = await _update_from_remote(
            "upgrade", workspace, ArtifactKind.ENABLER, name, version, repository_url, tag_prefix, client
        )
        callback_result = await _run_callback(
            callback or TaskFileCallback(), "upgrade", workspace.artifact_dir(ArtifactKind.ENABLER, name)
        )
        logger.info(f"Upgraded enabler '{name}' to {version}")
        return result.model_copy(update={"callback": callback_result})

    except Exception as e:
        if isinstance(e, ModuleError):
            raise
        raise ModuleError(f"Failed to upgrade enabler '{name}': {e}", context={"name": name}) from e


async def remove_enabler(
    workspace: Workspace,
    name: str,
    callback: CallbackProtocol | None = None,
) -> OperationResult:
    """
    Run an enabler's ``remove`` callback, then delete its files.

    The callback runs first because its task file is one of the files
    being deleted.
    """
    try:
        installed = _require_installed(workspace, ArtifactKind.ENABLER, name)
        logger.info(f"Removing enabler '{name}' {installed.version}")

        callback_result = await _run_callback(
            callback or TaskFileCallback(), "remove", workspace.artifact_dir(ArtifactKind.ENABLER, name)
        )
        result = _remove_installed("remove", workspace, ArtifactKind.ENABLER, installed, name)
        logger.info(f"Removed enabler '{name}' ({len(result.deleted)} files)")
        return result.model_copy(update={"callback": callback_result})

    except Exception as e:
        if isinstance(e, ModuleError):
            raise
        raise ModuleError(f"Failed to remove enabler '{name}': {e}", context={"name": name}) from e
