"""Satis JSON repository catalog adapter.

Implements RepositoryCatalogPort by reading the ``repositories`` array
of the build tool's satis.json. The file is read on every call.
"""

import json
import logging
from pathlib import Path

from satis_webhook.core.errors import RepositoryCatalogInvalid
from satis_webhook.core.models import Repository, RepositoryCatalog
from satis_webhook.core.ports import RepositoryCatalogPort

logger = logging.getLogger(__name__)


class JsonRepositoryCatalog(RepositoryCatalogPort):
    """Reads repository records from a satis.json file."""

    def load(self, path: str) -> RepositoryCatalog:
        """Load the repository list in file order.

        Entries without a string ``url`` are skipped with a warning.

        Raises:
            RepositoryCatalogInvalid: If the file is unreadable or not JSON.
        """
        try:
            with Path(path).open(encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            logger.error(f"Failed to read repository list {path}: {e}", exc_info=True)
            raise RepositoryCatalogInvalid(path, str(e)) from e
        except json.JSONDecodeError as e:
            logger.error(f"Repository list {path} is not valid JSON: {e}")
            raise RepositoryCatalogInvalid(path, str(e)) from e

        if not isinstance(data, dict):
            raise RepositoryCatalogInvalid(path, "expected a JSON object")

        entries = data.get("repositories") or []
        if not isinstance(entries, list):
            raise RepositoryCatalogInvalid(path, "'repositories' must be a list")

        repositories = []
        for index, entry in enumerate(entries):
            url = entry.get("url") if isinstance(entry, dict) else None
            if not isinstance(url, str) or not url.strip():
                logger.warning(f"Skipping repository #{index} in {path}: no url")
                continue
            extra = {key: value for key, value in entry.items() if key not in ("url", "type")}
            repositories.append(
                Repository(url=url, type=entry.get("type"), extra=extra)
            )

        return RepositoryCatalog(repositories=tuple(repositories))
