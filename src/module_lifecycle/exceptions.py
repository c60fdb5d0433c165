"""Module lifecycle exceptions.

Every error names the violated precondition and carries the offending
paths, names and versions in ``context``.
"""


class ModuleError(Exception):
    """Base exception for module lifecycle operations."""

    def __init__(self, message: str, context: dict | None = None):
        """Initialize with message and optional context.

        Args:
            message: Human-readable error message
            context: Optional dict with additional context (file paths, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ManifestValidationError(ModuleError):
    """Invalid or missing manifest fields, or a name/version/directory mismatch."""


class MissingPathError(ModuleError):
    """A declared include or exclude path does not exist under its root."""

    def __init__(self, path: str, root: str, message: str | None = None):
        super().__init__(
            message or f"Declared path '{path}' does not exist under {root}",
            context={"path": path, "root": root},
        )
        self.path = path
        self.root = root


class ManifestNotFoundError(ModuleError):
    """No manifest matching the requested name and version was found."""

    def __init__(self, name: str, version: str, search_root: str):
        super().__init__(
            f"No manifest with name '{name}' and version '{version}' found in {search_root}",
            context={"name": name, "version": version, "search_root": search_root},
        )
        self.name = name
        self.version = version
        self.search_root = search_root


class ArchiveNotFoundError(ModuleError):
    """No archive for the requested name and version exists in the dist directory."""

    def __init__(self, name: str, version: str, dist_dir: str):
        super().__init__(
            f"No archive for '{name}' version '{version}' found in {dist_dir}",
            context={"name": name, "version": version, "dist_dir": dist_dir},
        )
        self.name = name
        self.version = version
        self.dist_dir = dist_dir


class FetchError(ModuleError):
    """Cloning a remote repository at a tag failed."""

    def __init__(self, url: str, tag: str, cause: str):
        super().__init__(
            f"Failed to fetch {url} at tag '{tag}': {cause}",
            context={"url": url, "tag": tag, "cause": cause},
        )
        self.url = url
        self.tag = tag
        self.cause = cause


class PreconditionError(ModuleError):
    """Operation precondition not met; raised before any mutation."""
