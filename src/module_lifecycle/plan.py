"""Two-phase reconciliation plans.

Phase one computes the complete delete list and copy list and checks that
every copy source exists. Phase two applies deletes, then copies. A missing
source therefore fails the operation before anything in the repository is
touched.

Applying a plan is best-effort, not atomic: an interruption between the
delete and copy phases leaves the old files deleted and the new ones
partially written.
"""

import logging
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from pathlib import PurePosixPath

from .exceptions import MissingPathError
from .pathset import expand_paths
from .pathset import is_excluded
from .schema import ModuleManifest
from .utils import normalize_manifest_paths
from .workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CopyOperation:
    """Copy one staged file to a repository-relative target."""

    source: Path
    target: str


@dataclass(frozen=True)
class ReconciliationPlan:
    """Deletes (repository-relative files) followed by copies."""

    deletes: list[str] = field(default_factory=list)
    copies: list[CopyOperation] = field(default_factory=list)

    @property
    def copied_paths(self) -> list[str]:
        return [op.target for op in self.copies]


def plan_copies(manifest: ModuleManifest, source_root: Path, flat_fallback: bool = False) -> list[CopyOperation]:
    """
    Plan copies of a manifest's include set out of a staging root.

    Excluded entries are subtracted without requiring them to exist in the
    staging root: archives never contain them and checkouts usually don't.

    Args:
        manifest: Manifest found in the staging root
        source_root: Checkout or extraction root
        flat_fallback: Look for a missing entry's file name at the staging
            root (legacy flat archives)

    Returns:
        Copy operations, sorted by target

    Raises:
        MissingPathError: If a declared include entry is absent
    """
    excluded = normalize_manifest_paths(manifest.exclude)
    for entry in excluded:
        if not (source_root / entry).exists():
            logger.debug(f"Excluded path absent from {source_root}: {entry}")
    copies: dict[str, CopyOperation] = {}

    for entry in normalize_manifest_paths(manifest.include):
        if is_excluded(entry, excluded):
            continue

        candidate = source_root / entry
        if not candidate.exists() and flat_fallback:
            flat = source_root / PurePosixPath(entry).name
            if flat.is_file():
                logger.debug(f"Using {flat.name} at staging root for {entry}")
                copies[entry] = CopyOperation(source=flat, target=entry)
                continue

        if not candidate.exists():
            raise MissingPathError(entry, str(source_root))

        if candidate.is_dir():
            for relative in expand_paths(source_root, [entry], excluded):
                copies[relative] = CopyOperation(source=source_root / relative, target=relative)
        else:
            copies[entry] = CopyOperation(source=candidate, target=entry)

    return [copies[target] for target in sorted(copies)]


def plan_deletes(manifest: ModuleManifest, root: Path) -> list[str]:
    """
    Plan deletion of an installed manifest's include set.

    Entries already missing from disk are skipped. Files excluded by the
    manifest (local settings under an included directory) are left alone.

    Returns:
        Repository-relative files, sorted
    """
    excluded = normalize_manifest_paths(manifest.exclude)
    entries = [entry for entry in normalize_manifest_paths(manifest.include) if not is_excluded(entry, excluded)]

    for entry in entries:
        if not (root / entry).exists():
            logger.debug(f"Installed path already absent: {entry}")

    return expand_paths(root, entries, excluded)


def build_plan(
    incoming: ModuleManifest | None,
    source_root: Path | None,
    installed: ModuleManifest | None,
    workspace: Workspace,
    flat_fallback: bool = False,
) -> ReconciliationPlan:
    """Build the full plan: delete what ``installed`` owns, copy what ``incoming`` declares."""
    deletes = plan_deletes(installed, workspace.root) if installed is not None else []
    copies = []
    if incoming is not None and source_root is not None:
        copies = plan_copies(incoming, source_root, flat_fallback=flat_fallback)
    return ReconciliationPlan(deletes=deletes, copies=copies)


def apply_plan(plan: ReconciliationPlan, workspace: Workspace) -> None:
    """Apply every delete, then every copy."""
    for relative in plan.deletes:
        workspace.delete_file(relative)

    for op in plan.copies:
        workspace.copy_file(op.source, op.target)

    logger.debug(f"Applied plan: {len(plan.deletes)} deleted, {len(plan.copies)} copied")
