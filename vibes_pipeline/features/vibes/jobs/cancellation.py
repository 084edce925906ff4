"""
Cooperative cancellation for backfill runs.

The runner checks a ``CancellationToken`` at every target boundary. OS signal
handlers are installed only for the lifetime of one run by ``SignalScope``:

- first SIGINT or SIGTERM: request a graceful stop and write a checkpoint
- second SIGINT: write a checkpoint, close the run log, exit with 130
- SIGTERM while already stopping: ignored
"""

import asyncio
import os
import signal
from collections.abc import Callable

from vibes_pipeline.infrastructure.observability.logging import RunLogFile, get_logger

logger = get_logger(__name__)

FORCED_EXIT_CODE = 130


class CancellationToken:
    """Set once; read at every loop boundary."""

    def __init__(self):
        self._cancelled = False
        self.reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "requested") -> bool:
        """Request a stop. Returns False if a stop was already requested."""
        if self._cancelled:
            return False
        self._cancelled = True
        self.reason = reason
        return True


class SignalScope:
    """
    Installs SIGINT/SIGTERM handlers on the running loop and removes them on exit.

    Args:
        token: Token to cancel on the first signal
        checkpoint: Synchronous cursor write; runs inside the signal callback
        log_file: Run log to close before a forced exit
        exit_fn: Process exit used by the forced path
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(
        self,
        token: CancellationToken,
        checkpoint: Callable[[], None],
        log_file: RunLogFile | None = None,
        exit_fn: Callable[[int], None] = os._exit,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.token = token
        self._checkpoint = checkpoint
        self._log_file = log_file
        self._exit = exit_fn
        self._loop = loop
        self._installed: list[signal.Signals] = []

    def _write_checkpoint(self) -> None:
        try:
            self._checkpoint()
        except OSError as e:
            logger.error("Checkpoint write failed during shutdown", error=str(e))

    def handle(self, signum: int) -> None:
        name = signal.Signals(signum).name

        if self.token.cancel(reason=name):
            logger.warning(
                "Stop requested; finishing in-flight target",
                signal=name,
                hint="send SIGINT again to force exit",
            )
            self._write_checkpoint()
            return

        if signum == signal.SIGINT:
            logger.error("Second interrupt received; forcing exit", signal=name)
            self._write_checkpoint()
            if self._log_file is not None:
                self._log_file.close()
            self._exit(FORCED_EXIT_CODE)
            return

        logger.warning("Already stopping; ignoring signal", signal=name)

    def __enter__(self) -> "SignalScope":
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        for sig in self.SIGNALS:
            try:
                loop.add_signal_handler(sig, self.handle, sig)
            except (NotImplementedError, RuntimeError) as e:
                logger.warning("Signal handler not installed", signal=sig.name, error=str(e))
                continue
            self._installed.append(sig)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        for sig in self._installed:
            self._loop.remove_signal_handler(sig)
        self._installed.clear()
