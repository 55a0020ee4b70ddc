"""
In-process background queue for long lectures.

Jobs are claimed (PROCESSING) before they are queued, so the queue itself
holds no state that the lecture records do not; after a restart the
service re-derives it from the store (see LectureService.recover).
"""
import asyncio
import logging
from typing import List

from notetaker.domain.models import Job
from notetaker.domain.services.pipeline import LecturePipeline

logger = logging.getLogger(__name__)


class JobQueue:
    def __init__(self, pipeline: LecturePipeline, workers: int = 2) -> None:
        self.pipeline = pipeline
        self.worker_count = max(1, workers)
        self._queue: "asyncio.Queue[Job]" = asyncio.Queue()
        self._workers: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        if self._workers:
            return
        for n in range(self.worker_count):
            self._workers.append(asyncio.create_task(self._worker_loop(n), name=f"lecture-worker-{n}"))
        logger.info("Started %d lecture workers", self.worker_count)

    async def stop(self) -> None:
        """Cancel workers. Lectures in flight stay PROCESSING for recovery."""
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        logger.info("Lecture workers stopped")

    async def submit(self, job: Job) -> None:
        await self._queue.put(job)
        logger.info("Lecture %s queued for background processing (queue size %d)", job.id, self._queue.qsize())

    def pending(self) -> int:
        return self._queue.qsize()

    async def join(self) -> None:
        """Wait until every submitted lecture has been processed."""
        await self._queue.join()

    async def _worker_loop(self, worker: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.pipeline.execute(job)
            except asyncio.CancelledError:
                raise
            except Exception:
                # execute() records failures itself; this is a last resort
                logger.exception("Worker %d crashed on lecture %s", worker, job.id)
            finally:
                self._queue.task_done()
