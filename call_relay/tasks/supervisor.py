"""
In-process background job supervisor

Jobs are scheduled on the running event loop after the inbound request has
been answered. Each job runs in its own task; failures are logged at the job
boundary and never reach the caller or other jobs.
"""

import asyncio
from typing import TYPE_CHECKING, Optional, Set

from call_relay.core.logging import get_logger
from call_relay.tasks.jobs import Job

if TYPE_CHECKING:
    from call_relay.context import AppContext

logger = get_logger(__name__)


class TaskSupervisor:
    """Tracks in-flight jobs so shutdown and tests can wait for them."""

    def __init__(self, context: Optional["AppContext"] = None):
        self.context = context
        self._tasks: Set[asyncio.Task] = set()

    def bind(self, context: "AppContext") -> None:
        self.context = context

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, job: Job) -> asyncio.Task:
        if self.context is None:
            raise RuntimeError("TaskSupervisor is not bound to an application context")

        task = asyncio.create_task(self._run(job), name=job.describe())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Scheduled {job.describe()}")
        return task

    async def _run(self, job: Job) -> None:
        try:
            await job.run(self.context)
        except asyncio.CancelledError:
            logger.warning(f"{job.describe()} cancelled")
            raise
        except Exception as e:
            logger.error(f"{job.describe()} failed: {e}", exc_info=True)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every in-flight job, including jobs submitted while waiting."""
        while self._tasks:
            tasks = list(self._tasks)
            _, still_running = await asyncio.wait(tasks, timeout=timeout)
            if still_running:
                logger.warning(f"Cancelling {len(still_running)} background job(s) after {timeout}s")
                for task in still_running:
                    task.cancel()
                await asyncio.gather(*still_running, return_exceptions=True)
                return
