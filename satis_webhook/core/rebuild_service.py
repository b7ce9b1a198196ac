"""Rebuild service.

Implements RebuildPort: the single-pass pipeline that turns a webhook
delivery into a build of the Satis repository.

Pipeline order: load config, check the caller IP, check configured
paths, detect the provider, authenticate, resolve the repository,
assemble the command, run it.
"""

import logging
import shlex
import threading
from collections.abc import Callable
from pathlib import Path

from .access import is_authorized
from .command import build_command
from .errors import AccessDenied, AuthenticationFailed, PreconditionFailed
from .models import (
    AuthenticationRejected,
    BuildResult,
    OutputStream,
    Provider,
    RebuildConfig,
    RebuildPlan,
    WebhookRequest,
)
from .ports import (
    ConfigLoaderPort,
    ProcessRunnerPort,
    RebuildPort,
    RepositoryCatalogPort,
)
from .providers import authenticate, detect_provider
from .resolver import resolve_repository

logger = logging.getLogger(__name__)

STDOUT_MARKER = "."
STDERR_MARKER = "E"
SUCCESS_MESSAGE = "Successful rebuild!"
FAILURE_MESSAGE = "Oops! An error occured!"
TIMEOUT_MESSAGE = "The build timed out; please retry the delivery."


def check_preconditions(config: RebuildConfig) -> list[str]:
    """Return one message per configured path that does not exist.

    Checks run in a fixed order (bin, json, webroot) and all of them run.
    """
    errors = []
    if not Path(config.bin).exists():
        errors.append("The Satis bin could not be found.")
    if not Path(config.json).exists():
        errors.append("The satis.json file could not be found.")
    if not Path(config.webroot).exists():
        errors.append("The webroot directory could not be found.")
    return errors


def describe_result(result: BuildResult) -> str:
    """Final operator-facing line for a build."""
    if result.succeeded:
        return SUCCESS_MESSAGE
    if result.timed_out:
        return f"{FAILURE_MESSAGE}\n{TIMEOUT_MESSAGE}"
    return FAILURE_MESSAGE


class RebuildService(RebuildPort):
    """Turns deliveries into builds.

    Builds are serialized by a single lock: every build writes the same
    json file and webroot.
    """

    def __init__(
        self,
        config_loader: ConfigLoaderPort,
        catalog: RepositoryCatalogPort,
        runner: ProcessRunnerPort,
        config_file: str = "config.yml",
    ):
        """Initialize the rebuild service.

        Args:
            config_loader: Loads config_file at the start of every request.
            catalog: Reads the build tool's repository list.
            runner: Spawns the build command.
            config_file: Path to the YAML configuration.
        """
        self.config_loader = config_loader
        self.catalog = catalog
        self.runner = runner
        self.config_file = config_file
        self._build_lock = threading.Lock()

    def _ensure_preconditions(self, config: RebuildConfig) -> None:
        errors = check_preconditions(config)
        if errors:
            logger.error(
                "Build preconditions failed",
                extra={"errors": errors},
            )
            raise PreconditionFailed(errors)

    def plan_delivery(self, request: WebhookRequest) -> RebuildPlan:
        """Authenticate a webhook delivery and decide what to build."""
        config = self.config_loader.load(self.config_file)

        if not is_authorized(request.client_ip, config.authorized_ips):
            logger.warning(f"Rejected delivery from unauthorized IP {request.client_ip}")
            raise AccessDenied(request.client_ip)

        self._ensure_preconditions(config)

        provider = detect_provider(request)
        auth = authenticate(provider, request, config)
        if isinstance(auth, AuthenticationRejected):
            logger.warning(
                f"Rejected {provider.value} delivery from {request.client_ip}: {auth.message}"
            )
            raise AuthenticationFailed(provider.value, auth.message)

        event = auth.event
        repository_url = None
        if provider is not Provider.GENERAL:
            catalog = self.catalog.load(config.json)
            repository = resolve_repository(catalog, event.clone_url, event.ssh_url)
            if repository is not None:
                repository_url = repository.url
            else:
                logger.warning(
                    f"No tracked repository matches {event.clone_url} / {event.ssh_url}, "
                    "rebuilding all repositories"
                )

        plan = RebuildPlan(
            provider=provider,
            command=build_command(config, repository_url),
            repository_url=repository_url,
            timeout=config.timeout,
        )
        logger.info(
            f"Planned {'scoped' if plan.scoped else 'full'} rebuild for {provider.value} delivery",
            extra={"repository_url": repository_url},
        )
        return plan

    def plan_manual(self, repository_url: str | None = None) -> RebuildPlan:
        """Decide what to build for an operator-initiated rebuild.

        The URL is used as given; it is not checked against the catalog.
        """
        config = self.config_loader.load(self.config_file)
        self._ensure_preconditions(config)
        return RebuildPlan(
            provider=Provider.GENERAL,
            command=build_command(config, repository_url),
            repository_url=repository_url,
            timeout=config.timeout,
        )

    def execute(self, plan: RebuildPlan, write: Callable[[str], None]) -> BuildResult:
        """Run a planned build, streaming progress markers to ``write``."""

        def on_output(stream: OutputStream, chunk: str) -> None:
            if stream is OutputStream.STDERR:
                write(STDERR_MARKER)
                logger.warning(f"Build stderr: {chunk.rstrip()}")
            else:
                write(STDOUT_MARKER)

        with self._build_lock:
            logger.info(f"Running build: {shlex.join(plan.command.argv)}")
            result = self.runner.run(plan.command.argv, on_output, timeout=plan.timeout)

        if result.succeeded:
            logger.info("Build finished successfully")
        elif result.timed_out:
            logger.error(f"Build timed out after {plan.timeout} seconds")
        else:
            logger.error(f"Build failed with exit code {result.exit_code}")

        write(f"\n\n{describe_result(result)}\n")
        return result
