"""Path set resolution - the effective file set a manifest designates.

The resolved set is ``sort(unique(include)) - exclude``. It is never
persisted; every operation recomputes it from the manifest it is working
with.
"""

import logging
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .exceptions import ManifestValidationError
from .exceptions import MissingPathError
from .schema import ModuleManifest
from .utils import is_same_or_beneath
from .utils import normalize_manifest_paths

logger = logging.getLogger(__name__)


class ResolvedPathSet(BaseModel):
    """Resolved include set for one manifest (immutable data structure).

    ``paths`` are the manifest entries that survive exclusion, sorted.
    ``files`` expands directory entries to every file beneath them, with
    exclusions applied inside those directories as well.
    """

    model_config = ConfigDict(frozen=True)

    root: Path
    paths: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        """Check if nothing survived exclusion."""
        return not self.paths


def is_excluded(path: str, excluded: list[str]) -> bool:
    """Check if ``path`` is an excluded entry or lies beneath an excluded directory."""
    return any(is_same_or_beneath(path, entry) for entry in excluded)


def expand_paths(root: Path, paths: list[str], excluded: list[str]) -> list[str]:
    """
    Expand manifest entries to the files they designate under ``root``.

    Directory entries contribute their full recursive contents. Entries that
    don't exist under ``root`` are skipped; callers decide whether that is an
    error.

    Returns:
        Sorted, unique root-relative forward-slash file paths
    """
    files: set[str] = set()
    for entry in paths:
        full = root / entry
        if full.is_dir():
            for child in full.rglob("*"):
                if not child.is_file():
                    continue
                relative = child.relative_to(root).as_posix()
                if not is_excluded(relative, excluded):
                    files.add(relative)
        elif full.is_file():
            files.add(entry)
        else:
            logger.debug(f"Skipping missing entry during expansion: {entry}")
    return sorted(files)


def resolve_path_set(manifest: ModuleManifest, root: Path) -> ResolvedPathSet:
    """
    Resolve a manifest's effective path set against ``root``.

    Algorithm:
    1. Normalize, deduplicate and sort ``include``; every entry must exist
    2. Normalize ``exclude``; every entry must exist
    3. Remove excluded entries; the remainder must be non-empty
    4. Expand directory entries to their files

    Args:
        manifest: Manifest to resolve
        root: Directory the manifest's paths are relative to

    Returns:
        ResolvedPathSet with deterministic ordering

    Raises:
        MissingPathError: If an include or exclude path doesn't exist
        ManifestValidationError: If a path is malformed or nothing survives exclusion

    Example:
        >>> resolved = resolve_path_set(manifest, Path("/repo"))
        >>> resolved.paths
        ['modules/sample/.tasks.ps1', 'modules/sample/module.manifest.json']
    """
    include = normalize_manifest_paths(manifest.include)
    for entry in include:
        if not (root / entry).exists():
            raise MissingPathError(entry, str(root))

    excluded = normalize_manifest_paths(manifest.exclude)
    for entry in excluded:
        if not (root / entry).exists():
            raise MissingPathError(entry, str(root))

    paths = [entry for entry in include if entry not in excluded]
    if not paths:
        raise ManifestValidationError(
            f"Manifest '{manifest.name}' includes no paths after exclusion",
            context={"name": manifest.name, "include": include, "exclude": excluded},
        )

    files = expand_paths(root, paths, excluded)
    logger.debug(f"Resolved '{manifest.name}': {len(paths)} entries, {len(files)} files")

    return ResolvedPathSet(root=root, paths=paths, files=files)
