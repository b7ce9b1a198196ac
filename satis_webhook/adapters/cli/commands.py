"""CLI command implementations for operator-initiated rebuilds.

Maps command-line invocations to RebuildPort operations and reports
progress on a text stream.
"""

import logging
import sys
from typing import TextIO

from satis_webhook.core.errors import PreconditionFailed, SatisWebhookError
from satis_webhook.core.ports import RebuildPort

logger = logging.getLogger(__name__)


class CLICommandHandler:
    """Handles CLI commands by delegating to RebuildPort."""

    def __init__(self, rebuild_port: RebuildPort, output: TextIO | None = None):
        """Initialize the CLI command handler.

        Args:
            rebuild_port: RebuildPort implementation to execute commands.
            output: Stream for progress and messages (default stdout).
        """
        self.rebuild_port = rebuild_port
        self.output = output if output is not None else sys.stdout

    def _write(self, text: str) -> None:
        self.output.write(text)
        self.output.flush()

    def rebuild(self, repository_url: str | None = None) -> int:
        """Rebuild one repository, or all of them.

        Args:
            repository_url: Limit the build to this repository URL.

        Returns:
            Process exit code: the build's, or -1 if it could not start.
        """
        try:
            plan = self.rebuild_port.plan_manual(repository_url)
        except PreconditionFailed as e:
            self._write(e.message)
            return e.exit_code
        except SatisWebhookError as e:
            logger.error(f"Rebuild could not start: {e.message}")
            self._write(f"{e.message}\n")
            return -1

        result = self.rebuild_port.execute(plan, self._write)
        if not result.succeeded:
            reason = "timed out" if result.timed_out else f"exited with code {result.exit_code}"
            logger.error(f"Rebuild failed: build process {reason}")
        return result.exit_code
