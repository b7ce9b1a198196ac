"""Subprocess runner adapter.

Implements ProcessRunnerPort with subprocess.Popen. The argument vector
goes straight to the OS (no shell). stdout and stderr are drained by two
reader threads into a queue so the callback always runs on the caller's
thread, in arrival order.

Each build runs in its own session, so a timeout kills the whole process
group, including whatever sudo started.
"""

import logging
import os
import queue
import signal
import subprocess
import threading
import time
from collections.abc import Sequence
from typing import IO

from satis_webhook.core.models import BuildResult, OutputStream
from satis_webhook.core.ports import OutputCallback, ProcessRunnerPort

logger = logging.getLogger(__name__)

FAILED_EXIT_CODE = -1

_Chunk = tuple[OutputStream, str] | None


def _pump(pipe: IO[str], stream: OutputStream, chunks: "queue.Queue[_Chunk]") -> None:
    """Copy lines from a pipe into the queue, then signal end of stream."""
    try:
        for line in iter(pipe.readline, ""):
            chunks.put((stream, line))
    finally:
        pipe.close()
        chunks.put(None)


def _signal_group(process: "subprocess.Popen[str]", sig: signal.Signals) -> None:
    """Send a signal to every process in the child's process group."""
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass
    except PermissionError as e:
        logger.warning(f"Cannot signal process group {process.pid}: {e}")


class SubprocessRunner(ProcessRunnerPort):
    """Runs build commands as child processes."""

    def __init__(self, cwd: str | None = None, kill_grace_seconds: float = 5.0):
        """Initialize the runner.

        Args:
            cwd: Working directory for the child (default: inherit).
            kill_grace_seconds: How long to wait after SIGTERM before SIGKILL,
                and for readers after the kill.
        """
        self.cwd = cwd
        self.kill_grace_seconds = kill_grace_seconds

    def run(
        self,
        argv: Sequence[str],
        on_output: OutputCallback,
        timeout: float | None = None,
    ) -> BuildResult:
        """Run argv to completion, streaming output to on_output."""
        try:
            process = subprocess.Popen(
                list(argv),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                cwd=self.cwd,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Failed to start build command {argv[0]!r}: {e}", exc_info=True)
            on_output(OutputStream.STDERR, f"{e}\n")
            return BuildResult(exit_code=FAILED_EXIT_CODE)

        assert process.stdout is not None and process.stderr is not None
        chunks: "queue.Queue[_Chunk]" = queue.Queue()
        readers = [
            threading.Thread(
                target=_pump, args=(process.stdout, OutputStream.STDOUT, chunks), daemon=True
            ),
            threading.Thread(
                target=_pump, args=(process.stderr, OutputStream.STDERR, chunks), daemon=True
            ),
        ]
        for reader in readers:
            reader.start()

        deadline = time.monotonic() + timeout if timeout is not None else None

        def remaining() -> float | None:
            if deadline is None:
                return None
            return max(deadline - time.monotonic(), 0.0)

        open_streams = len(readers)
        while open_streams:
            try:
                item = chunks.get(timeout=remaining())
            except queue.Empty:
                return self._kill(process, readers, timeout)
            if item is None:
                open_streams -= 1
                continue
            on_output(*item)

        try:
            exit_code = process.wait(timeout=remaining())
        except subprocess.TimeoutExpired:
            return self._kill(process, readers, timeout)

        for reader in readers:
            reader.join()
        logger.debug(f"Build command exited with code {exit_code}")
        return BuildResult(exit_code=exit_code)

    def _kill(
        self,
        process: "subprocess.Popen[str]",
        readers: list[threading.Thread],
        timeout: float | None,
    ) -> BuildResult:
        logger.error(f"Build command exceeded {timeout}s, killing process group {process.pid}")
        _signal_group(process, signal.SIGTERM)
        try:
            process.wait(timeout=self.kill_grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(f"Build process {process.pid} ignored SIGTERM")
        # Descendants may outlive the leader
        _signal_group(process, signal.SIGKILL)
        try:
            process.wait(timeout=self.kill_grace_seconds)
        except subprocess.TimeoutExpired:
            logger.error(f"Build process {process.pid} did not exit after kill")
        for reader in readers:
            reader.join(timeout=self.kill_grace_seconds)
        return BuildResult(exit_code=FAILED_EXIT_CODE, timed_out=True)
