"""Detached execution of job pipelines."""

from __future__ import annotations

import asyncio
import logging

from app.services.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)


class JobRunner:
    """Owns one background task per job.

    The HTTP layer hands a job over and returns; failures surface only through
    the job record and the notification dispatcher.
    """

    def __init__(self, orchestrator: JobOrchestrator, *, max_concurrent_jobs: int) -> None:
        self._orchestrator = orchestrator
        self._admission = asyncio.Semaphore(max(1, max_concurrent_jobs))
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def is_running(self, job_id: str) -> bool:
        """True until the job's task has finished, notification included."""
        return job_id in self._tasks

    def dispatch(self, job_id: str) -> asyncio.Task:
        task = asyncio.create_task(
            self._orchestrator.run(job_id, admission=self._admission),
            name=f"job-{job_id}",
        )
        self._tasks[job_id] = task
        task.add_done_callback(lambda done: self._on_done(job_id, done))
        logger.info("runner.dispatched job_id=%s active=%s", job_id, len(self._tasks))
        return task

    def _on_done(self, job_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("runner.task_crashed job_id=%s reason=%s", job_id, type(exc).__name__)

    async def join(self) -> None:
        """Wait for every dispatched job to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Cancel running jobs; they end FAILED since there is no resume."""
        tasks = list(self._tasks.values())
        if not tasks:
            return
        logger.warning("runner.shutdown cancelling=%s", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.wait(tasks, timeout=timeout)
