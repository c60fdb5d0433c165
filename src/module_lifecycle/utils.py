"""Manifest path utilities.

Manifest paths are repository-relative, forward-slash strings. These helpers
normalize what authors write (backslashes, leading ``./``) and reject paths
that could escape the root they are resolved against.
"""

import logging
from pathlib import PurePosixPath

from .exceptions import ManifestValidationError

logger = logging.getLogger(__name__)


def normalize_manifest_path(path: str) -> str:
    """Normalize a declared manifest path to its canonical forward-slash form.

    Args:
        path: Path as written in a manifest ``include`` or ``exclude`` list

    Returns:
        Canonical repository-relative path (e.g., "modules/sample/.tasks.ps1")

    Raises:
        ManifestValidationError: If the path is empty or names only ".", is absolute,
            carries a trailing separator, or contains a ".." segment

    Examples:
        >>> normalize_manifest_path("modules\\\\sample\\\\module.manifest.json")
        'modules/sample/module.manifest.json'
        >>> normalize_manifest_path("./modules/sample/.tasks.ps1")
        'modules/sample/.tasks.ps1'
    """
    candidate = path.strip().replace("\\", "/")
    if not candidate:
        raise ManifestValidationError("Manifest path must not be empty", context={"path": path})

    if candidate.endswith("/"):
        raise ManifestValidationError(
            f"Manifest path '{path}' must not end with a separator",
            context={"path": path},
        )

    pure = PurePosixPath(candidate)
    if not pure.parts:
        raise ManifestValidationError(
            f"Manifest path '{path}' must name a file or directory",
            context={"path": path},
        )
    # Drive letters ("C:/...") never survive as relative paths
    if pure.is_absolute() or ":" in pure.parts[0]:
        raise ManifestValidationError(
            f"Manifest path '{path}' must be repository-relative",
            context={"path": path},
        )
    if ".." in pure.parts:
        raise ManifestValidationError(
            f"Manifest path '{path}' must not contain '..' segments",
            context={"path": path},
        )

    # PurePosixPath drops "." segments and duplicate separators
    return str(pure)


def normalize_manifest_paths(paths: list[str]) -> list[str]:
    """Normalize, deduplicate and sort a list of declared manifest paths."""
    return sorted({normalize_manifest_path(p) for p in paths})


def is_same_or_beneath(path: str, prefix: str) -> bool:
    """Check whether ``path`` equals ``prefix`` or lies inside it.

    Both arguments are canonical forward-slash paths.

    >>> is_same_or_beneath("modules/sample/a.txt", "modules/sample")
    True
    >>> is_same_or_beneath("modules/sample-two/a.txt", "modules/sample")
    False
    """
    return path == prefix or path.startswith(prefix + "/")
