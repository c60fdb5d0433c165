"""Archive codec - Deterministic zip packing and staged extraction.

Archive layout:
- One entry per resolved file, named by its repository-relative forward-slash path
- Entries sorted, with fixed timestamps and permissions, so packing an
  unchanged tree twice yields byte-identical archives
- Written as ``dist/<name>/<name>.<version>.zip``; legacy ``Module.zip`` and
  ``Module.<version>.zip`` are read as fallbacks but never written
"""

import io
import logging
import zipfile
from pathlib import Path
from pathlib import PurePosixPath

from .exceptions import ArchiveNotFoundError
from .exceptions import ModuleError
from .pathset import ResolvedPathSet

logger = logging.getLogger(__name__)

LEGACY_ARCHIVE_STEM = "Module"

# Earliest timestamp the zip format can represent
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_FILE_MODE = 0o644


def archive_filename(name: str, version: str) -> str:
    """Archive filename for a module version (e.g., "sample.0.2.0.zip")."""
    return f"{name}.{version}.zip"


def legacy_archive_filenames(version: str | None, stem: str = LEGACY_ARCHIVE_STEM) -> list[str]:
    """Legacy archive filenames in lookup order, most specific first."""
    names = []
    if version:
        names.append(f"{stem}.{version}.zip")
    names.append(f"{stem}.zip")
    return names


def pack_archive(resolved: ResolvedPathSet) -> bytes:
    """
    Build a zip archive from a resolved path set.

    Args:
        resolved: Resolved path set; ``files`` are read relative to ``resolved.root``

    Returns:
        Archive bytes
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for relative in sorted(resolved.files):
            info = zipfile.ZipInfo(relative, date_time=_FIXED_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = _FILE_MODE << 16
            archive.writestr(info, (resolved.root / relative).read_bytes())
            logger.debug(f"Packed {relative}")
    return buffer.getvalue()


def write_archive(resolved: ResolvedPathSet, destination: Path) -> Path:
    """Pack ``resolved`` and write the archive to ``destination``."""
    data = pack_archive(resolved)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(data)
    logger.debug(f"Wrote {len(resolved.files)} entries ({len(data)} bytes) to {destination}")
    return destination


def remove_stale_archives(
    dist_dir: Path,
    name: str,
    version: str,
    legacy_stem: str = LEGACY_ARCHIVE_STEM,
) -> list[Path]:
    """
    Delete archives that would be ambiguous next to a freshly packed one.

    Removes the target ``<name>.<version>.zip`` and any legacy archive in
    ``dist_dir``.

    Returns:
        Paths that were deleted
    """
    current = archive_filename(name, version)
    removed = []
    for filename in [current, *legacy_archive_filenames(version, legacy_stem)]:
        candidate = dist_dir / filename
        if candidate.is_file():
            candidate.unlink()
            removed.append(candidate)
            if filename == current:
                logger.debug(f"Removed previous archive {candidate}")
            else:
                logger.warning(f"Removed legacy archive {candidate}")
    return removed


def find_archive(
    dist_dir: Path,
    name: str,
    version: str,
    legacy_stem: str = LEGACY_ARCHIVE_STEM,
) -> Path:
    """
    Locate the archive for a module version.

    Lookup order: ``<name>.<version>.zip``, ``Module.<version>.zip``, ``Module.zip``.

    Raises:
        ArchiveNotFoundError: If none of the candidates exist
    """
    for filename in [archive_filename(name, version), *legacy_archive_filenames(version, legacy_stem)]:
        candidate = dist_dir / filename
        if candidate.is_file():
            if filename != archive_filename(name, version):
                logger.warning(f"Using legacy archive {candidate}")
            return candidate

    raise ArchiveNotFoundError(name, version, str(dist_dir))


def _entry_target(staging_root: Path, entry_name: str) -> Path | None:
    """Map an archive entry to its path under ``staging_root``.

    Returns None for directory entries and entries naming the root itself.
    Raises for entries that would escape the staging root.
    """
    # Archives produced on Windows may carry backslash separators
    normalized = entry_name.replace("\\", "/")
    if normalized.endswith("/"):
        return None

    pure = PurePosixPath(normalized)
    if not pure.parts:
        return None
    if pure.is_absolute() or ".." in pure.parts or ":" in pure.parts[0]:
        raise ModuleError(
            f"Archive entry '{entry_name}' escapes the extraction root",
            context={"entry": entry_name},
        )
    return staging_root.joinpath(*pure.parts)


def unpack_archive(archive_path: Path, staging_root: Path) -> list[str]:
    """
    Expand an archive into a staging directory.

    The full archive is extracted; no filtering happens here. Callers copy
    onward only what the archive's manifest declares.

    Args:
        archive_path: Zip archive to expand
        staging_root: Exclusively owned staging directory (never the repository)

    Returns:
        Extracted entry names, forward-slash normalized

    Raises:
        ModuleError: If the archive is corrupt or an entry escapes ``staging_root``
    """
    extracted = []
    try:
        with zipfile.ZipFile(archive_path) as archive:
            for info in archive.infolist():
                target = _entry_target(staging_root, info.filename)
                if target is None:
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(archive.read(info))
                extracted.append(target.relative_to(staging_root).as_posix())
    except zipfile.BadZipFile as e:
        raise ModuleError(
            f"Archive {archive_path} is not a valid zip file: {e}",
            context={"archive": str(archive_path)},
        ) from e

    logger.debug(f"Extracted {len(extracted)} entries from {archive_path} to {staging_root}")
    return extracted
