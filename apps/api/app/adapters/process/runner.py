"""Async wrapper around one external command (ffmpeg, ffprobe)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Literal

from app.adapters.process.registry import ProcessRegistry
from app.errors import SpawnFailedError

logger = logging.getLogger(__name__)

Channel = Literal["stdout", "stderr"]

_READ_CHUNK_BYTES = 4096
_TERMINATE_GRACE_SECONDS = 5.0


@dataclass(frozen=True, slots=True)
class ProcessChunk:
    channel: Channel
    data: bytes

    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class ProcessResult:
    exit_code: int
    stdout: bytes
    stderr: bytes


class ProcessRunner:
    """Spawn a command and expose its output as a live chunk stream.

    Usage::

        async with ProcessRunner("ffmpeg", args, registry=registry) as runner:
            async for chunk in runner.stream():
                ...
            exit_code = await runner.wait()

    Leaving the context terminates the process if it is still running, so a
    cancelled job never leaves an orphaned encoder behind.
    """

    def __init__(
        self,
        command: str,
        args: Sequence[str],
        *,
        registry: ProcessRegistry | None = None,
    ) -> None:
        self.command = command
        self.args = list(args)
        self._registry = registry
        self._process: asyncio.subprocess.Process | None = None

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    @property
    def returncode(self) -> int | None:
        return None if self._process is None else self._process.returncode

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def __aenter__(self) -> ProcessRunner:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        if self._process is not None:
            return
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("process.spawn_failed command=%s reason=%s", self.command, exc)
            raise SpawnFailedError(self.command, str(exc)) from exc

        if self._registry is not None:
            self._registry.register(self)
        logger.debug("process.started command=%s pid=%s", self.command, self._process.pid)

    async def stream(self) -> AsyncIterator[ProcessChunk]:
        """Yield output chunks from both pipes as they arrive, until both close."""
        process = self._require_process()
        queue: asyncio.Queue[ProcessChunk | None] = asyncio.Queue()
        readers = [
            asyncio.create_task(_pump("stdout", process.stdout, queue)),
            asyncio.create_task(_pump("stderr", process.stderr, queue)),
        ]
        open_pipes = len(readers)
        try:
            while open_pipes:
                item = await queue.get()
                if item is None:
                    open_pipes -= 1
                    continue
                yield item
        finally:
            for reader in readers:
                if not reader.done():
                    reader.cancel()
            await asyncio.gather(*readers, return_exceptions=True)

    async def wait(self) -> int:
        process = self._require_process()
        exit_code = await process.wait()
        self._release()
        return exit_code

    def cancel(self) -> None:
        """Send SIGTERM to the process if it is still running."""
        if not self.running:
            return
        assert self._process is not None
        try:
            self._process.terminate()
        except ProcessLookupError:
            return
        logger.info("process.cancelled command=%s pid=%s", self.command, self._process.pid)

    async def close(self) -> None:
        """Terminate (then kill) a still-running process and reap it."""
        if self._process is None:
            return
        if self._process.returncode is None:
            self.cancel()
            try:
                await asyncio.wait_for(self._process.wait(), timeout=_TERMINATE_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("process.kill command=%s pid=%s", self.command, self._process.pid)
                try:
                    self._process.kill()
                except ProcessLookupError:
                    pass
                await self._process.wait()
        self._release()

    async def run(self) -> ProcessResult:
        """Run to completion and collect both pipes."""
        stdout = bytearray()
        stderr = bytearray()
        async with self:
            async for chunk in self.stream():
                if chunk.channel == "stdout":
                    stdout.extend(chunk.data)
                else:
                    stderr.extend(chunk.data)
            exit_code = await self.wait()
        return ProcessResult(exit_code=exit_code, stdout=bytes(stdout), stderr=bytes(stderr))

    def _require_process(self) -> asyncio.subprocess.Process:
        if self._process is None:
            raise RuntimeError(f"{self.command} has not been started")
        return self._process

    def _release(self) -> None:
        if self._registry is not None:
            self._registry.unregister(self)


async def _pump(
    channel: Channel,
    reader: asyncio.StreamReader | None,
    queue: asyncio.Queue[ProcessChunk | None],
) -> None:
    try:
        if reader is None:
            return
        while True:
            data = await reader.read(_READ_CHUNK_BYTES)
            if not data:
                return
            await queue.put(ProcessChunk(channel=channel, data=data))
    finally:
        queue.put_nowait(None)
