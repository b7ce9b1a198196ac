"""Port interfaces for the Satis webhook receiver.

These abstract base classes define the boundaries between core
domain logic and external adapters. Implementations live in the
adapters/ package.

Port Interface Categories:

1. **Driven Ports** (core calls out to adapters)
   - ConfigLoaderPort: Read config.yml into a RebuildConfig
   - RepositoryCatalogPort: Read the build tool's repository list
   - ProcessRunnerPort: Spawn the build command and stream its output

2. **Driving Ports** (adapters/external systems call into core)
   - RebuildPort: Entry point for webhook deliveries and manual rebuilds
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from .models import (
    BuildResult,
    OutputStream,
    RebuildConfig,
    RebuildPlan,
    RepositoryCatalog,
    WebhookRequest,
)

OutputCallback = Callable[[OutputStream, str], None]


# ============================================================================
# DRIVEN PORTS (Core calls out to adapters)
# ============================================================================


class ConfigLoaderPort(ABC):
    """Port for loading the per-request rebuild configuration."""

    @abstractmethod
    def load(self, config_file: str) -> RebuildConfig:
        """Load configuration and merge it over the defaults.

        Args:
            config_file: Path to the configuration file.

        Returns:
            Validated RebuildConfig.

        Raises:
            ConfigurationMissing: If the file does not exist.
            ConfigurationInvalid: If the file cannot be parsed or validated.
        """


class RepositoryCatalogPort(ABC):
    """Port for reading the build tool's own repository list.

    Implementations must not cache: the file may change between requests.
    """

    @abstractmethod
    def load(self, path: str) -> RepositoryCatalog:
        """Load the repository list.

        Args:
            path: Path to the build tool's JSON file.

        Returns:
            RepositoryCatalog preserving file order.

        Raises:
            RepositoryCatalogInvalid: If the file cannot be read or parsed.
        """


class ProcessRunnerPort(ABC):
    """Port for spawning the build process.

    Implementations must pass the argument vector to the OS as discrete
    arguments, never through a shell.
    """

    @abstractmethod
    def run(
        self,
        argv: Sequence[str],
        on_output: OutputCallback,
        timeout: float | None = None,
    ) -> BuildResult:
        """Run a command to completion, streaming its output.

        Args:
            argv: Argument vector; argv[0] is the executable.
            on_output: Called with (stream, chunk) for every chunk read,
                on the caller's thread.
            timeout: Seconds before the process is killed (None = no bound).

        Returns:
            BuildResult with the exit code. A process that could not be
            started or was killed on timeout reports exit code -1.
        """


# ============================================================================
# DRIVING PORTS (External systems call into core)
# ============================================================================


class RebuildPort(ABC):
    """Port for triggering rebuilds.

    Driving port: the webhook receiver and the CLI invoke these methods.
    Planning and execution are separate so the caller can commit to a
    response status before build output starts streaming.
    """

    @abstractmethod
    def plan_delivery(self, request: WebhookRequest) -> RebuildPlan:
        """Authenticate a webhook delivery and decide what to build.

        Raises:
            SatisWebhookError: Any subclass; the request must stop.
        """

    @abstractmethod
    def plan_manual(self, repository_url: str | None = None) -> RebuildPlan:
        """Decide what to build for an operator-initiated rebuild.

        Raises:
            SatisWebhookError: If configuration or preconditions fail.
        """

    @abstractmethod
    def execute(self, plan: RebuildPlan, write: Callable[[str], None]) -> BuildResult:
        """Run a planned build, writing progress markers and a final line.

        Args:
            plan: Plan returned by plan_delivery or plan_manual.
            write: Receives operator-facing text as it is produced.

        Returns:
            BuildResult of the build process.
        """
