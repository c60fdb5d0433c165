"""Remote fetcher - Check out a repository at a version tag into staging."""

import logging
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict

from .exceptions import FetchError
from .protocols import SourceControlProtocol
from .schema import DEFAULT_TAG_PREFIX

logger = logging.getLogger(__name__)

CHECKOUT_DIRNAME = "checkout"


def build_tag(version: str, tag_prefix: str | None = None, default_prefix: str = DEFAULT_TAG_PREFIX) -> str:
    """
    Build the tag name for a version.

    >>> build_tag("1.2.0")
    'v1.2.0'
    >>> build_tag("1.2.0", "")
    '1.2.0'
    >>> build_tag("1.2.0", "rel-")
    'rel-1.2.0'
    """
    prefix = default_prefix if tag_prefix is None else tag_prefix
    return f"{prefix}{version}"


class RemoteReference(BaseModel):
    """Repository URL plus the version to check out. Selects a tag, nothing more."""

    model_config = ConfigDict(frozen=True)

    url: str
    version: str
    tag_prefix: str | None = None

    @property
    def tag(self) -> str:
        return build_tag(self.version, self.tag_prefix)


async def fetch(reference: RemoteReference, staging_root: Path, client: SourceControlProtocol) -> Path:
    """
    Clone ``reference`` into ``staging_root``.

    No retry: tags are immutable, so a failed shallow clone is reported as is.

    Args:
        reference: Repository and version to fetch
        staging_root: Exclusively owned staging directory
        client: Source-control client

    Returns:
        Checkout root inside ``staging_root``

    Raises:
        FetchError: If the clone fails for any reason
    """
    checkout = staging_root / CHECKOUT_DIRNAME
    logger.info(f"Fetching {reference.url} at tag {reference.tag}")

    try:
        await client.clone(reference.url, reference.tag, checkout)
    except FetchError:
        raise
    except Exception as e:
        raise FetchError(reference.url, reference.tag, str(e)) from e

    if not checkout.is_dir():
        raise FetchError(reference.url, reference.tag, "clone produced no checkout directory")

    logger.debug(f"Checked out {reference.url}@{reference.tag} to {checkout}")
    return checkout
