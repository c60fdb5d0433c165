"""Manifest locator - Find the manifest matching a name and version in a staging root.

Checkouts and archives may contain several manifests (other modules,
fixtures, malformed files). Candidates are read defensively: one that fails
to parse is skipped, never fatal.
"""

import logging
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict

from .exceptions import ManifestNotFoundError
from .exceptions import ModuleError
from .schema import ModuleManifest

logger = logging.getLogger(__name__)

_SKIPPED_DIRS = {".git"}


class LocatedManifest(BaseModel):
    """A manifest found in a staging root, with the file it came from."""

    model_config = ConfigDict(frozen=True)

    path: Path
    manifest: ModuleManifest


def _read_candidate(manifest_path: Path) -> ModuleManifest | None:
    """Parse a candidate manifest, returning None if it can't be read."""
    try:
        return ModuleManifest.from_file(manifest_path)
    except (ModuleError, OSError) as e:
        logger.debug(f"Skipping unreadable manifest candidate {manifest_path}: {e}")
        return None


def find_manifest_candidates(search_root: Path, manifest_filename: str) -> list[Path]:
    """
    List files named ``manifest_filename`` beneath ``search_root``.

    Sorted by relative path so enumeration order does not depend on the
    filesystem. ``.git`` directories are skipped.
    """
    candidates = []
    for candidate in search_root.rglob(manifest_filename):
        relative = candidate.relative_to(search_root)
        if _SKIPPED_DIRS.intersection(relative.parts[:-1]):
            continue
        if candidate.is_file():
            candidates.append(candidate)
    return sorted(candidates, key=lambda p: p.relative_to(search_root).as_posix())


def locate_manifest(
    search_root: Path,
    expected_name: str,
    expected_version: str,
    manifest_filename: str,
    origin: str | None = None,
) -> LocatedManifest:
    """
    Locate the manifest whose name and version match the request.

    Name comparison is case-insensitive; version comparison is exact. When
    several candidates match, the first in sorted path order wins and the
    others are reported as a warning.

    Args:
        search_root: Checkout or extraction root
        expected_name: Requested module/enabler name
        expected_version: Requested version
        manifest_filename: e.g. "module.manifest.json"
        origin: Repository URL or archive path for error messages

    Returns:
        LocatedManifest for the first match

    Raises:
        ManifestNotFoundError: If no candidate matches
    """
    wanted = expected_name.lower()
    matches: list[LocatedManifest] = []

    for candidate in find_manifest_candidates(search_root, manifest_filename):
        manifest = _read_candidate(candidate)
        if manifest is None:
            continue
        if manifest.name.lower() == wanted and manifest.version == expected_version:
            matches.append(LocatedManifest(path=candidate, manifest=manifest))
        else:
            logger.debug(f"Manifest {candidate} is {manifest.name}@{manifest.version}, not a match")

    if not matches:
        raise ManifestNotFoundError(expected_name, expected_version, origin or str(search_root))

    if len(matches) > 1:
        others = ", ".join(str(m.path.relative_to(search_root)) for m in matches[1:])
        logger.warning(
            f"Multiple manifests match {expected_name}@{expected_version}; "
            f"using {matches[0].path.relative_to(search_root)}, ignoring {others}"
        )

    logger.debug(f"Located {expected_name}@{expected_version} at {matches[0].path}")
    return matches[0]
