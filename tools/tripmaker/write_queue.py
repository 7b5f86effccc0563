"""FIFO queue that runs store operations one at a time.

Every read-modify-write cycle against the user collection is submitted here:

    caller → submit(job) → asyncio.Queue → drain worker → job() → caller's future

One worker drains the queue in arrival order, so at most one job is in
flight and each job observes everything the jobs before it wrote. Waiting
callers suspend on a future; nothing polls.

The worker is started lazily by ``submit`` and exits once the queue is empty,
so an idle queue owns no task.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]


class QueueStopped(RuntimeError):
    """The drain worker was cancelled before a queued job finished."""


def _discard_outcome(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()


@dataclass
class _Pending:
    job: Job
    future: asyncio.Future


class WriteQueue:
    """Strictly ordered, single-consumer job queue owned by one store instance.

    Usage::

        queue = WriteQueue()
        result = await queue.submit(lambda: do_io())

    A caller that is cancelled while waiting does not cancel its job: the job
    still runs in turn and its effects land.
    """

    def __init__(self) -> None:
        self._pending: asyncio.Queue[_Pending] = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return self._pending.qsize()

    @property
    def busy(self) -> bool:
        """True while a worker is draining jobs."""
        return self._worker is not None and not self._worker.done()

    async def submit(self, job: Job) -> Any:
        """Enqueue ``job`` and wait for its result (or exception).

        Args:
            job: Zero-argument coroutine function to run in turn.

        Returns:
            Whatever ``job`` returns.

        Raises:
            QueueStopped: the worker was cancelled before ``job`` finished.
        """
        loop = asyncio.get_running_loop()
        pending = _Pending(job=job, future=loop.create_future())
        self._pending.put_nowait(pending)
        if not self.busy:
            self._worker = loop.create_task(self._drain())
        try:
            return await asyncio.shield(pending.future)
        except asyncio.CancelledError:
            # The job still runs; nobody is left to read its outcome.
            pending.future.add_done_callback(_discard_outcome)
            raise

    async def _drain(self) -> None:
        current: Optional[_Pending] = None
        try:
            while not self._pending.empty():
                current = self._pending.get_nowait()
                try:
                    result = await current.job()
                except Exception as e:
                    if not current.future.done():
                        current.future.set_exception(e)
                else:
                    if not current.future.done():
                        current.future.set_result(result)
                finally:
                    self._pending.task_done()
                current = None
        except BaseException:
            abandoned = [current] if current is not None else []
            while not self._pending.empty():
                abandoned.append(self._pending.get_nowait())
                self._pending.task_done()
            if abandoned:
                logger.warning(f"Write queue worker stopped with {len(abandoned)} job(s) unfinished")
            for pending in abandoned:
                if not pending.future.done():
                    pending.future.set_exception(QueueStopped("Write queue worker stopped"))
            raise

    async def join(self) -> None:
        """Wait until every job submitted so far has finished."""
        await self._pending.join()
