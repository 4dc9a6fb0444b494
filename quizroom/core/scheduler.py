"""Deferred question-timeout jobs.

A job is keyed by ``(room_id, question_index)``. The pending job of a room is
stored in ``question_timeouts`` inside the transaction that arms it, and an
asyncio task sleeps until it is due. On firing the job hands the key to the
bound callback, which must re-validate it against fresh room state.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Set, Tuple
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from quizroom.core import utils
from quizroom.models.question_timeout import QuestionTimeout

logger = logging.getLogger(__name__)

JobCallback = Callable[[int, int], Awaitable[None]]


async def save_job(db: AsyncSession, room_id: int, question_index: int, fire_at: int) -> QuestionTimeout:
    """Store the pending job of a room, replacing any earlier one."""
    job = await db.get(QuestionTimeout, room_id)
    if job is None:
        job = QuestionTimeout(room_id=room_id, question_index=question_index, fire_at=fire_at)
        db.add(job)
    else:
        job.question_index = question_index
        job.fire_at = fire_at
    return job


async def clear_job(db: AsyncSession, room_id: int, question_index: Optional[int] = None):
    stmt = delete(QuestionTimeout).where(QuestionTimeout.room_id == room_id)
    if question_index is not None:
        stmt = stmt.where(QuestionTimeout.question_index == question_index)
    await db.execute(stmt)


class TimeoutScheduler:
    def __init__(self):
        self._callback: Optional[JobCallback] = None
        # room_id -> (question_index, task)
        self._jobs: Dict[int, Tuple[int, asyncio.Task]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def configure(self, callback: JobCallback):
        self._callback = callback

    def schedule_once(self, delay_ms: int, callback: Callable[..., Awaitable[None]], **payload) -> asyncio.Task:
        task = asyncio.create_task(self._run_after(delay_ms, callback, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_after(self, delay_ms: int, callback: Callable[..., Awaitable[None]], payload: dict):
        await asyncio.sleep(max(delay_ms, 0) / 1000)
        try:
            await callback(**payload)
        except Exception:
            # The job has no caller to report to
            logger.exception(f"Scheduled job failed with payload {payload}")

    def arm(self, room_id: int, question_index: int, delay_ms: int) -> Optional[asyncio.Task]:
        if self._callback is None:
            logger.warning(f"Timeout scheduler not configured; room {room_id} question {question_index} not armed")
            return None

        previous = self._jobs.get(room_id)
        if previous is not None:
            _, previous_task = previous
            if not previous_task.done() and previous_task is not asyncio.current_task():
                previous_task.cancel()

        task = self.schedule_once(delay_ms, self._fire, room_id=room_id, question_index=question_index)
        self._jobs[room_id] = (question_index, task)
        logger.debug(f"Armed timeout for room {room_id} question {question_index} in {delay_ms}ms")
        return task

    async def _fire(self, room_id: int, question_index: int):
        entry = self._jobs.get(room_id)
        if entry is not None and entry[1] is asyncio.current_task():
            del self._jobs[room_id]
        await self._callback(room_id, question_index)

    def is_armed(self, room_id: int, question_index: Optional[int] = None) -> bool:
        entry = self._jobs.get(room_id)
        if entry is None or entry[1].done():
            return False
        return question_index is None or entry[0] == question_index

    def pending(self) -> Dict[int, int]:
        return {room_id: index for room_id, (index, task) in self._jobs.items() if not task.done()}

    async def restore(self, db: AsyncSession) -> int:
        """Re-arm every persisted job, e.g. after a restart."""
        result = await db.execute(select(QuestionTimeout))
        jobs = result.scalars().all()
        now = utils.now_ms()
        for job in jobs:
            self.arm(job.room_id, job.question_index, job.fire_at - now)
        if jobs:
            logger.info(f"Restored {len(jobs)} pending question timeouts")
        return len(jobs)

    async def shutdown(self):
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._jobs.clear()


scheduler = TimeoutScheduler()
