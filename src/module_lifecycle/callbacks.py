"""Enabler lifecycle callbacks.

An enabler may ship a task file next to its manifest. After its files are
materialized (or before they are deleted, for ``remove``) the named task is
invoked. A missing task file is not an error.
"""

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_TASK_FILE = ".tasks.ps1"
DEFAULT_INTERPRETER = ("pwsh", "-NoProfile", "-NonInteractive", "-File")


class CallbackStatus(str, Enum):
    """Outcome of an enabler callback dispatch."""

    INVOKED = "invoked"
    SKIPPED = "skipped"
    FAILED = "failed"


class CallbackResult(BaseModel):
    """Result of ``try_invoke``."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: CallbackStatus
    detail: str = ""

    @classmethod
    def invoked(cls, name: str, detail: str = "") -> "CallbackResult":
        return cls(name=name, status=CallbackStatus.INVOKED, detail=detail)

    @classmethod
    def skipped(cls, name: str, detail: str = "") -> "CallbackResult":
        return cls(name=name, status=CallbackStatus.SKIPPED, detail=detail)

    @classmethod
    def failed(cls, name: str, detail: str = "") -> "CallbackResult":
        return cls(name=name, status=CallbackStatus.FAILED, detail=detail)


class TaskFileCallback:
    """
    Run an enabler's task file with the callback name as its argument.

    Command line: ``<interpreter...> <enabler_dir>/<task_file> <name>``, run
    from the enabler directory.

    Example:
        >>> callback = TaskFileCallback()  # pwsh .tasks.ps1 install
        >>> callback = TaskFileCallback(task_file="tasks.py", interpreter=[sys.executable])
    """

    def __init__(
        self,
        task_file: str = DEFAULT_TASK_FILE,
        interpreter: Sequence[str] = DEFAULT_INTERPRETER,
    ):
        self.task_file = task_file
        self.interpreter = list(interpreter)

    async def try_invoke(self, name: str, enabler_dir: Path) -> CallbackResult:
        task_path = enabler_dir / self.task_file
        if not task_path.is_file():
            logger.debug(f"No task file at {task_path}, skipping '{name}' callback")
            return CallbackResult.skipped(name, f"no task file at {task_path}")

        args = [*self.interpreter, str(task_path), name]
        logger.info(f"Running enabler callback '{name}' from {task_path}")
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(enabler_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return CallbackResult.failed(name, f"could not start {self.interpreter[0]}: {e}")

        stdout, stderr = await process.communicate()
        output = stdout.decode(errors="replace").strip()
        if output:
            logger.debug(f"Callback '{name}' output: {output}")

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or f"exited with code {process.returncode}"
            return CallbackResult.failed(name, detail)

        return CallbackResult.invoked(name, output)
