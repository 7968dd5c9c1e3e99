"""In-memory queue for asynchronous review job processing."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

from review_agent.logger import get_logger, log_failure, log_timing, log_with_context

from .models import PullRequestPayload, ReviewJob

logger = get_logger()

ReviewJobHandler = Callable[[ReviewJob], Awaitable[None]]


class _ReviewQueue:
    def __init__(self) -> None:
        self._queue: asyncio.Queue[ReviewJob] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._handler: ReviewJobHandler | None = None

    def configure_handler(self, handler: ReviewJobHandler | None) -> None:
        self._handler = handler

    def _ensure_worker(self) -> asyncio.Queue[ReviewJob]:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            loop = asyncio.get_running_loop()
            self._worker = loop.create_task(self._worker_loop(self._queue))
        return self._queue

    async def _worker_loop(self, queue: asyncio.Queue[ReviewJob]) -> None:
        while True:
            job = await queue.get()
            start_time = time.monotonic()
            repo_name = job.payload.repository.full_name
            pull_number = job.payload.pull_request.number

            ctx_logger = log_with_context(logger,
                                          delivery_id=job.delivery_id,
                                          repository=repo_name,
                                          pull_number=pull_number)
            ctx_logger.info("=== QUEUE: Job processing started ===")

            try:
                if self._handler is None:
                    log_failure(logger, "No review job handler configured; dropping job",
                                delivery_id=job.delivery_id, repository=repo_name)
                else:
                    with log_timing(ctx_logger, "process_review_job"):
                        await self._handler(job)
                    processing_time = time.monotonic() - start_time
                    ctx_logger.info(f"=== QUEUE: Job handler completed (processed in {processing_time:.3f}s) ===")
            except Exception as exc:
                processing_time = time.monotonic() - start_time
                log_failure(logger, f"Unhandled exception while processing job (failed after {processing_time:.3f}s)",
                            exc, delivery_id=job.delivery_id, repository=repo_name)
                logger.exception("Full exception traceback:")
            finally:
                queue.task_done()

    async def enqueue(self, job: ReviewJob) -> None:
        queue = self._ensure_worker()
        await queue.put(job)

    async def join(self) -> None:
        if self._queue is not None:
            await self._queue.join()

    async def shutdown(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        finally:
            self._worker = None
            self._queue = None

    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0


_QUEUE = _ReviewQueue()


def _coerce_job(job: ReviewJob | dict[str, Any]) -> ReviewJob:
    if isinstance(job, ReviewJob):
        return job
    payload = job.get("payload")
    if isinstance(payload, dict):
        job["payload"] = PullRequestPayload.model_validate(payload)
    return ReviewJob.model_validate(job)


async def enqueue_review_job(job: ReviewJob | dict[str, Any]) -> None:
    """Add a job to the in-memory queue, starting the worker if needed."""

    review_job = _coerce_job(job)
    ctx_logger = log_with_context(logger,
                                  delivery_id=review_job.delivery_id,
                                  repository=review_job.payload.repository.full_name)

    ctx_logger.debug(f"Adding job to queue (pending_jobs={_QUEUE.pending()})")
    await _QUEUE.enqueue(review_job)
    ctx_logger.debug(f"Job added to queue (new_pending_jobs={_QUEUE.pending()})")


def configure_review_handler(handler: ReviewJobHandler | None) -> None:
    """Configure the coroutine that processes jobs from the queue."""

    _QUEUE.configure_handler(handler)


async def wait_for_pending_jobs() -> None:
    """Block until every enqueued job has been processed."""

    await _QUEUE.join()


async def shutdown_queue() -> None:
    """Gracefully stop the worker task."""

    await _QUEUE.shutdown()


def pending_jobs() -> int:
    """Return the number of jobs waiting in the queue."""

    return _QUEUE.pending()
