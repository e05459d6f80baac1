"""Process-wide registry of live external processes."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.adapters.process.runner import ProcessRunner

logger = logging.getLogger(__name__)


class ProcessRegistry:
    """Tracks every running ProcessRunner so one shutdown signal reaches all of them.

    Runners add themselves when spawned and remove themselves once reaped.
    Signal handlers are installed at most once per registry.
    """

    def __init__(self) -> None:
        self._runners: set[ProcessRunner] = set()
        self._signals_installed = False

    def register(self, runner: ProcessRunner) -> None:
        self._runners.add(runner)

    def unregister(self, runner: ProcessRunner) -> None:
        self._runners.discard(runner)

    def active(self) -> list[ProcessRunner]:
        return list(self._runners)

    def __len__(self) -> int:
        return len(self._runners)

    def terminate_all(self) -> int:
        """Send a termination signal to every live process; returns how many were signalled."""
        runners = self.active()
        for runner in runners:
            runner.cancel()
        if runners:
            logger.warning("process.terminate_all count=%s", len(runners))
        return len(runners)

    def install_signal_handlers(
        self,
        loop: asyncio.AbstractEventLoop,
        *,
        signals: Iterable[signal.Signals] = (signal.SIGTERM, signal.SIGINT),
        on_signal: Callable[[], None] | None = None,
    ) -> bool:
        """Attach one listener per signal to a standalone event loop.

        ASGI servers own their signal handling; under uvicorn the app lifespan
        calls ``terminate_all`` instead.
        """
        if self._signals_installed:
            return False
        for sig in signals:
            loop.add_signal_handler(sig, self._handle_signal, sig, on_signal)
        self._signals_installed = True
        return True

    def _handle_signal(self, sig: signal.Signals, on_signal: Callable[[], None] | None) -> None:
        logger.warning("process.signal_received signal=%s", sig.name)
        self.terminate_all()
        if on_signal is not None:
            on_signal()


_registry = ProcessRegistry()


def get_process_registry() -> ProcessRegistry:
    return _registry
