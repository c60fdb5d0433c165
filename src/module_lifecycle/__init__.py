"""module-lifecycle - Manifest-driven module and enabler lifecycle management.

Public API: manifests, path set resolution, archives, remote fetch, and the
pack/unpack/clone/update/remove operations that reconcile a repository with
them.

Apps inject policy: the workspace root and layout, the source-control
client, and the enabler callback runner.
"""

from .archive import find_archive
from .archive import pack_archive
from .archive import unpack_archive
from .archive import write_archive
from .callbacks import CallbackResult
from .callbacks import CallbackStatus
from .callbacks import TaskFileCallback
from .discovery import InstalledArtifact
from .discovery import list_enablers
from .discovery import list_installed
from .discovery import list_modules
from .exceptions import ArchiveNotFoundError
from .exceptions import FetchError
from .exceptions import ManifestNotFoundError
from .exceptions import ManifestValidationError
from .exceptions import MissingPathError
from .exceptions import ModuleError
from .exceptions import PreconditionError
from .fetcher import RemoteReference
from .fetcher import build_tag
from .fetcher import fetch
from .locator import LocatedManifest
from .locator import locate_manifest
from .operations import OperationResult
from .operations import clone_module
from .operations import install_enabler
from .operations import pack_module
from .operations import remove_enabler
from .operations import remove_module
from .operations import unpack_module
from .operations import update_module
from .operations import upgrade_enabler
from .pathset import ResolvedPathSet
from .pathset import resolve_path_set
from .protocols import CallbackProtocol
from .protocols import SourceControlProtocol
from .schema import ManifestSource
from .schema import ModuleManifest
from .sources import GitClient
from .staging import staging_directory
from .validation import ensure_valid
from .validation import validate_manifest
from .workspace import ArtifactKind
from .workspace import Workspace
from .workspace import WorkspaceLayout

__all__ = [
    # Manifests
    "ModuleManifest",
    "ManifestSource",
    "validate_manifest",
    "ensure_valid",
    # Path sets
    "ResolvedPathSet",
    "resolve_path_set",
    # Archives
    "pack_archive",
    "write_archive",
    "unpack_archive",
    "find_archive",
    # Remote fetch
    "RemoteReference",
    "build_tag",
    "fetch",
    "GitClient",
    "SourceControlProtocol",
    "locate_manifest",
    "LocatedManifest",
    "staging_directory",
    # Workspace
    "Workspace",
    "WorkspaceLayout",
    "ArtifactKind",
    "InstalledArtifact",
    "list_installed",
    "list_modules",
    "list_enablers",
    # Operations
    "OperationResult",
    "pack_module",
    "unpack_module",
    "clone_module",
    "update_module",
    "remove_module",
    "install_enabler",
    "upgrade_enabler",
    "remove_enabler",
    # Enabler callbacks
    "CallbackProtocol",
    "CallbackResult",
    "CallbackStatus",
    "TaskFileCallback",
    # Exceptions
    "ModuleError",
    "ManifestValidationError",
    "MissingPathError",
    "ManifestNotFoundError",
    "ArchiveNotFoundError",
    "FetchError",
    "PreconditionError",
]

__version__ = "0.1.0"
