"""Manifest validation against a root directory.

Rules are checked in a fixed order and each failure is reported as its own
error:

1. ``name`` present, non-empty and lowercase (and equal to its directory)
2. ``version`` present and non-empty
3. ``include`` present and non-empty
4. every ``include`` and ``exclude`` path exists under the root
"""

import logging
from pathlib import Path

from .exceptions import ManifestValidationError
from .exceptions import MissingPathError
from .exceptions import ModuleError
from .schema import ModuleManifest
from .utils import normalize_manifest_path

logger = logging.getLogger(__name__)


def validate_manifest(
    manifest: ModuleManifest,
    root: Path,
    directory: str | None = None,
) -> list[ModuleError]:
    """
    Validate a manifest against the root its paths are relative to.

    Pure read: nothing on disk is modified.

    Args:
        manifest: Parsed manifest
        root: Repository root (local manifests) or checkout root (remote manifests)
        directory: Name of the directory containing the manifest, if known

    Returns:
        Errors in rule order; empty when the manifest is valid
    """
    errors: list[ModuleError] = []

    if not manifest.name.strip():
        errors.append(ManifestValidationError("Manifest 'name' must not be empty", context={"field": "name"}))
    elif manifest.name != manifest.name.lower():
        errors.append(
            ManifestValidationError(
                f"Manifest 'name' must be lowercase: '{manifest.name}'",
                context={"field": "name", "name": manifest.name},
            )
        )
    elif directory is not None and manifest.name != directory:
        errors.append(
            ManifestValidationError(
                f"Manifest name '{manifest.name}' does not match its directory '{directory}'",
                context={"field": "name", "name": manifest.name, "directory": directory},
            )
        )

    if not manifest.version.strip():
        errors.append(
            ManifestValidationError("Manifest 'version' must not be empty", context={"field": "version"})
        )

    if not manifest.include:
        errors.append(
            ManifestValidationError("Manifest 'include' must not be empty", context={"field": "include"})
        )

    for field, paths in (("include", manifest.include), ("exclude", manifest.exclude)):
        for declared in paths:
            try:
                relative = normalize_manifest_path(declared)
            except ManifestValidationError as e:
                e.context.setdefault("field", field)
                errors.append(e)
                continue

            if not (root / relative).exists():
                errors.append(MissingPathError(relative, str(root)))

    return errors


def ensure_valid(manifest: ModuleManifest, root: Path, directory: str | None = None) -> None:
    """
    Raise the first validation error, if any.

    Raises:
        ManifestValidationError: Field or name/directory violations
        MissingPathError: A declared path is absent under ``root``
    """
    errors = validate_manifest(manifest, root, directory=directory)
    if errors:
        for extra in errors[1:]:
            logger.debug(f"Additional validation error for '{manifest.name}': {extra.message}")
        raise errors[0]
