"""Fake implementations of core ports for testing.

These in-memory implementations allow core domain logic to be tested
without external dependencies:

- FakeConfigLoader: Returns a fixed RebuildConfig
- FakeRepositoryCatalog: In-memory repository list
- FakeProcessRunner: Scripted build output and exit codes
- FakeRebuildPort: Captured plans and executions
"""

from .catalog import FakeRepositoryCatalog
from .config import FakeConfigLoader
from .rebuild import FakeRebuildPort
from .runner import FakeProcessRunner

__all__ = [
    "FakeConfigLoader",
    "FakeProcessRunner",
    "FakeRebuildPort",
    "FakeRepositoryCatalog",
]
