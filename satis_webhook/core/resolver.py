"""Matching delivered repository URLs against the build tool's catalog."""

import logging

from .models import Repository, RepositoryCatalog

logger = logging.getLogger(__name__)


def resolve_repository(
    catalog: RepositoryCatalog,
    clone_url: str | None,
    ssh_url: str | None,
) -> Repository | None:
    """Find the tracked repository a delivery refers to.

    The first catalog entry whose url equals either URL exactly wins,
    so catalog order decides between duplicates.

    Returns:
        The matching Repository, or None if neither URL is tracked.
    """
    candidates = {url for url in (clone_url, ssh_url) if url}
    if not candidates:
        return None

    matches = [repository for repository in catalog if repository.url in candidates]
    if len(matches) > 1:
        logger.warning(
            f"Repository listed {len(matches)} times in the catalog, using the first: "
            f"{matches[0].url}"
        )
    return matches[0] if matches else None
