"""
Fire-and-forget execution of pipeline runs.

The webhook handler acknowledges as soon as a run is spawned; the run's
outcome, or any exception that escapes it, only ever reaches the log.
"""

import asyncio
import logging
from typing import Set

from kolagent.orchestration.tasks import EventPipeline
from kolagent.services.types import PipelineOutcome, TransferEvent

logger = logging.getLogger(__name__)


class PipelineDispatcher:
    def __init__(self, pipeline: EventPipeline):
        self.pipeline = pipeline
        # Strong references; the event loop only keeps weak ones
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, event: TransferEvent) -> asyncio.Task:
        """Start a pipeline run in the background and return immediately."""
        task = asyncio.get_running_loop().create_task(
            self.pipeline.run(event), name=f"pipeline:{event.token_address}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug(f"Dispatched pipeline for {event.token_address} ({self.pending} pending)")
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Pipeline task {task.get_name()} was cancelled")
            return

        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Unhandled error in pipeline task {task.get_name()}: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            return

        outcome: PipelineOutcome = task.result()
        logger.info(
            f"Pipeline for {outcome.token_address} finished: {outcome.status}"
            + (f" ({outcome.detail})" if outcome.detail else "")
        )

    async def drain(self) -> None:
        """Wait for every in-flight run; used at shutdown."""
        if not self._tasks:
            return
        logger.info(f"Waiting for {len(self._tasks)} pipeline run(s) to finish")
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
