"""
Out-of-band job execution on top of FastAPI BackgroundTasks.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from fastapi import BackgroundTasks

logger = logging.getLogger(__name__)

Job = Callable[..., Awaitable[Any]]


class JobScheduler:
    """
    Runs jobs after the response has been sent.

    Jobs added while the queue is draining (e.g. a transcription job handing
    off to the analysis job) run after the current one.
    """

    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._tasks = background_tasks

    def run_after(self, delay_ms: int, job: Job, *args: Any, **kwargs: Any) -> None:
        self._tasks.add_task(_run_job, delay_ms, job, args, kwargs)
        logger.debug(f"[Jobs] scheduled {_job_name(job)} (delay {delay_ms}ms)")


def _job_name(job: Job) -> str:
    return getattr(job, "__name__", repr(job))


async def _run_job(delay_ms: int, job: Job, args: tuple, kwargs: dict) -> None:
    if delay_ms > 0:
        await asyncio.sleep(delay_ms / 1000)
    try:
        await job(*args, **kwargs)
    except Exception:
        # Keep the queue alive for the jobs behind this one
        logger.exception(f"[Jobs] {_job_name(job)} failed")
