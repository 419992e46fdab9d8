"""
Background plan generation: in-process queue drained by one worker task started from the lifespan.
Each job runs under GENERATION_TIMEOUT_SECONDS; UpstreamFailure is retried up to GENERATION_MAX_ATTEMPTS,
anything else (or the last attempt) lands in a bounded dead-letter list.
ENV: GENERATION_WORKER_ENABLED, GENERATION_TIMEOUT_SECONDS, GENERATION_MAX_ATTEMPTS.
"""
import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from planteria.config import get_settings
from planteria.db import SessionFactory
from planteria.errors import UpstreamFailure, format_error_message
from planteria.logging_config import bind_log_context, get_logger, unbind_log_context
from planteria.services.generation_service import (
    GENERATION_TIMEOUT_MESSAGE,
    fail_plan_generation,
    run_plan_generation,
)

logger = get_logger(__name__)

DEAD_LETTER_LIMIT = 100


@dataclass
class GenerationJob:
    plan_id: UUID
    user_id: str
    idea: str
    attempts: int = 0


@dataclass
class DeadLetter:
    job: GenerationJob
    error: str
    failed_at: datetime


_queue: Optional["asyncio.Queue[GenerationJob]"] = None
_worker_task: Optional[asyncio.Task[None]] = None
_session_factory: Optional[SessionFactory] = None
_dead_letters: Deque[DeadLetter] = deque(maxlen=DEAD_LETTER_LIMIT)
_processed = 0
_failed = 0
_last_run_at: Optional[datetime] = None
_enabled = False


def _get_queue() -> "asyncio.Queue[GenerationJob]":
    global _queue
    if _queue is None:
        _queue = asyncio.Queue()
    return _queue


async def enqueue_generation(plan_id: UUID, user_id: str, idea: str) -> GenerationJob:
    """Queue a generation job for a committed plan shell."""
    job = GenerationJob(plan_id=plan_id, user_id=user_id, idea=idea)
    await _get_queue().put(job)
    logger.info("generation.enqueued", plan_id=str(plan_id), queue_size=_get_queue().qsize())
    return job


def _dead_letter(job: GenerationJob, error: str) -> None:
    global _failed
    _failed += 1
    _dead_letters.append(DeadLetter(job=job, error=error, failed_at=datetime.now(timezone.utc)))
    logger.warning("generation.dead_lettered", plan_id=str(job.plan_id), attempts=job.attempts, error=error)


async def process_job(job: GenerationJob, session_factory: Optional[SessionFactory] = None) -> bool:
    """
    Run one attempt of a job. Returns True on success.
    A retryable failure puts the job back on the queue; a final failure dead-letters it.
    """
    global _processed, _last_run_at
    settings = get_settings()
    factory = session_factory or _session_factory
    job.attempts += 1
    _last_run_at = datetime.now(timezone.utc)
    bind_log_context(plan_id=str(job.plan_id), job_attempt=job.attempts)
    try:
        await asyncio.wait_for(
            run_plan_generation(job.plan_id, job.user_id, job.idea, session_factory=factory),
            timeout=settings.generation_timeout_seconds,
        )
        _processed += 1
        return True
    except asyncio.TimeoutError:
        try:
            await fail_plan_generation(job.plan_id, GENERATION_TIMEOUT_MESSAGE, session_factory=factory)
        except SQLAlchemyError as e:
            logger.error("generation.timeout_not_recorded", error=str(e))
        _dead_letter(job, GENERATION_TIMEOUT_MESSAGE)
    except UpstreamFailure as e:
        if job.attempts < settings.generation_max_attempts:
            logger.info("generation.retry_scheduled", attempt=job.attempts, error=e.message)
            await _get_queue().put(job)
        else:
            _dead_letter(job, e.message)
    except Exception as e:
        logger.exception("generation.job_failed", error=format_error_message(e))
        _dead_letter(job, format_error_message(e))
    finally:
        unbind_log_context("plan_id", "job_attempt")
    return False


async def _worker_loop() -> None:
    queue = _get_queue()
    while True:
        job = await queue.get()
        try:
            await process_job(job)
        except Exception as e:
            # the loop outlives any single job
            logger.exception("generation.worker_job_crashed", plan_id=str(job.plan_id), error=format_error_message(e))
            _dead_letter(job, format_error_message(e))
        finally:
            queue.task_done()


async def start_generation_worker(app: object, session_factory: Optional[SessionFactory] = None) -> None:
    """Start the worker task (called from lifespan startup). No-op when disabled or already running."""
    global _worker_task, _session_factory, _enabled
    settings = get_settings()
    _enabled = settings.generation_worker_enabled
    _session_factory = session_factory
    if not _enabled or _worker_task is not None:
        logger.info("generation.worker_not_started", enabled=_enabled)
        return
    _worker_task = asyncio.create_task(_worker_loop())
    logger.info(
        "generation.worker_started",
        timeout_seconds=settings.generation_timeout_seconds,
        max_attempts=settings.generation_max_attempts,
    )


async def stop_generation_worker() -> None:
    """Cancel the worker task. Jobs still queued are dropped with the process."""
    global _worker_task, _enabled
    _enabled = False
    if _worker_task is not None:
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            pass
    _worker_task = None
    logger.info("generation.worker_stopped", queued=_queue.qsize() if _queue is not None else 0)


def get_generation_status() -> Dict[str, Any]:
    """enabled, running, queue_size, processed, failed, last_run_at, dead_letters."""
    return {
        "enabled": _enabled,
        "running": _worker_task is not None and not _worker_task.done(),
        "queue_size": _queue.qsize() if _queue is not None else 0,
        "processed": _processed,
        "failed": _failed,
        "last_run_at": _last_run_at,
        "dead_letters": [
            {
                "plan_id": letter.job.plan_id,
                "attempts": letter.job.attempts,
                "error": letter.error,
                "failed_at": letter.failed_at,
            }
            for letter in _dead_letters
        ],
    }
