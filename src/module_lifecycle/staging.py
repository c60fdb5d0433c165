"""Staging directories for fetched and expanded artifacts.

A staging root belongs to the operation that created it and is removed on
every exit path, success or failure.
"""

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

STAGING_PREFIX = "module-lifecycle-"


@contextmanager
def staging_directory(prefix: str = STAGING_PREFIX) -> Iterator[Path]:
    """
    Create a fresh, randomly named staging directory and remove it on exit.

    Example:
        >>> with staging_directory() as staging:
        ...     unpack_archive(archive_path, staging)
    """
    path = Path(tempfile.mkdtemp(prefix=prefix))
    logger.debug(f"Created staging directory {path}")
    try:
        yield path
    finally:
        try:
            shutil.rmtree(path)
            logger.debug(f"Removed staging directory {path}")
        except OSError as e:
            # Don't mask the operation's own error with a cleanup failure
            logger.warning(f"Failed to remove staging directory {path}: {e}")
