"""Manifest schema - Parse module and enabler manifest JSON files.

A manifest names one distributable unit (module or enabler), its version, and
the file set it owns. Layout on disk:

    modules/<name>/module.manifest.json
    enablers/<name>/enabler.manifest.json
"""

import json
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError

from .exceptions import ManifestValidationError

DEFAULT_TAG_PREFIX = "v"


class InstallInstructions(BaseModel):
    """Onboarding text for humans and automated assistants."""

    model_config = ConfigDict(frozen=True)

    human: str | None = None
    copilot: str | None = None


class InstallSection(BaseModel):
    """Optional ``install`` block. Has no effect on reconciliation."""

    model_config = ConfigDict(frozen=True)

    instructions: InstallInstructions | None = None


class ManifestSource(BaseModel):
    """Canonical remote origin used by update operations.

    ``tag_prefix`` is tri-state: absent (None) means the default prefix "v",
    an explicit empty string means tags equal the bare version.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    git: str
    tag_prefix: str | None = Field(default=None, alias="tagPrefix")

    def resolved_tag_prefix(self, default: str = DEFAULT_TAG_PREFIX) -> str:
        """Return the declared tag prefix, or ``default`` when the field is absent."""
        return default if self.tag_prefix is None else self.tag_prefix


class ModuleManifest(BaseModel):
    """
    Module or enabler manifest.

    Parsing only checks shape. Semantic rules (lowercase name, non-empty
    version and include, path existence) live in ``validation``, so a remote
    manifest can be inspected before it is trusted.

    ``description`` is accepted when missing and defaults to an empty string;
    older manifests omit it and it has no effect on any operation.

    Manifests are immutable: a changed file set means a new manifest version.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_url: str | None = Field(default=None, alias="$schema")
    name: str
    version: str
    description: str = ""
    include: list[str]
    exclude: list[str] = Field(default_factory=list)
    source: ManifestSource | None = None
    install: InstallSection | None = None

    @classmethod
    def parse(cls, data: bytes | str, origin: str = "<manifest>") -> "ModuleManifest":
        """
        Parse manifest JSON.

        Args:
            data: Raw manifest content (UTF-8, BOM tolerated when given bytes)
            origin: Where the content came from, used in error messages

        Returns:
            ModuleManifest instance

        Raises:
            ManifestValidationError: If the content is not JSON, not an object,
                or is missing required fields
        """
        try:
            raw = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ManifestValidationError(
                f"Invalid manifest JSON in {origin}: {e}",
                context={"origin": origin},
            ) from e

        if not isinstance(raw, dict):
            raise ManifestValidationError(
                f"Manifest in {origin} must be a JSON object",
                context={"origin": origin},
            )

        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in e.errors()})
            raise ManifestValidationError(
                f"Invalid manifest in {origin}: {', '.join(fields)}: {e}",
                context={"origin": origin, "fields": fields},
            ) from e

    @classmethod
    def from_file(cls, manifest_path: Path) -> "ModuleManifest":
        """
        Load a manifest from disk.

        Raises:
            FileNotFoundError: If the manifest doesn't exist
            ManifestValidationError: If the manifest is malformed
        """
        if not manifest_path.exists():
            raise FileNotFoundError(f"Manifest not found: {manifest_path}")

        return cls.parse(manifest_path.read_bytes(), origin=str(manifest_path))

    def tag_prefix(self, default: str = DEFAULT_TAG_PREFIX) -> str:
        """Tag prefix declared by ``source``, falling back to ``default``."""
        if self.source is None:
            return default
        return self.source.resolved_tag_prefix(default)
