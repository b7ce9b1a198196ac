"""Fake RepositoryCatalogPort implementation for testing."""

from satis_webhook.core.models import Repository, RepositoryCatalog
from satis_webhook.core.ports import RepositoryCatalogPort


class FakeRepositoryCatalog(RepositoryCatalogPort):
    """In-memory repository list.

    Records every load so tests can assert the catalog was (or was not)
    consulted.
    """

    def __init__(self, urls: list[str] | None = None):
        """Initialize with repository URLs in catalog order."""
        self.urls = list(urls or [])
        self.load_calls: list[str] = []

    def load(self, path: str) -> RepositoryCatalog:
        """Return the in-memory catalog."""
        self.load_calls.append(path)
        return RepositoryCatalog(
            repositories=tuple(Repository(url=url, type="vcs") for url in self.urls)
        )
