"""Git source-control client.

Implements ``SourceControlProtocol`` with the ``git`` executable.
"""

import asyncio
import logging
import os
from pathlib import Path

from .exceptions import FetchError

logger = logging.getLogger(__name__)


class GitClient:
    """Shallow, single-branch clones via the ``git`` CLI.

    Prompts are disabled so an unauthenticated URL fails instead of blocking.
    """

    def __init__(self, executable: str = "git"):
        self.executable = executable

    def clone_args(self, url: str, ref: str, target_dir: Path) -> list[str]:
        """Build the clone command line."""
        return [
            self.executable,
            "clone",
            "--quiet",
            "--depth",
            "1",
            "--single-branch",
            "--branch",
            ref,
            url,
            str(target_dir),
        ]

    async def clone(self, url: str, ref: str, target_dir: Path) -> None:
        args = self.clone_args(url, ref, target_dir)
        logger.debug(f"Running: {' '.join(args)}")

        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            raise FetchError(url, ref, f"could not run {self.executable}: {e}") from e

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            cause = (
                stderr.decode(errors="replace").strip()
                or stdout.decode(errors="replace").strip()
                or f"git clone exited with code {process.returncode}"
            )
            raise FetchError(url, ref, cause)
