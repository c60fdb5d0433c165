"""Protocols for the collaborators lifecycle operations depend on.

Operations never shell out directly: apps inject a source-control client and
an enabler callback runner. Defaults live in ``sources`` and ``callbacks``.
"""

from pathlib import Path
from typing import Protocol
from typing import runtime_checkable

from .callbacks import CallbackResult


@runtime_checkable
class SourceControlProtocol(Protocol):
    """Protocol for fetching a repository at a fixed ref.

    Example implementations:
    - GitClient: ``git clone --depth 1 --single-branch --branch <ref>``
    - Test doubles that copy a fixture tree into ``target_dir``
    """

    async def clone(self, url: str, ref: str, target_dir: Path) -> None:
        """Shallow, single-branch clone of ``url`` at ``ref`` into ``target_dir``.

        Args:
            url: Repository URL
            ref: Tag (or branch) to check out
            target_dir: Directory to clone into (must not exist yet)

        Raises:
            FetchError: If the clone fails
        """
        ...


@runtime_checkable
class CallbackProtocol(Protocol):
    """Protocol for dispatching enabler lifecycle callbacks.

    Separates "did the callback exist" (SKIPPED) from "did it succeed"
    (INVOKED / FAILED).
    """

    async def try_invoke(self, name: str, enabler_dir: Path) -> CallbackResult:
        """Invoke the named callback ("install", "upgrade", "remove") if the enabler defines one.

        Args:
            name: Callback name
            enabler_dir: Materialized enabler directory

        Returns:
            CallbackResult describing whether the callback ran and how it ended
        """
        ...
