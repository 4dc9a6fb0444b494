import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator
from weakref import WeakValueDictionary


class RoomLocks:
    """Per-room asyncio locks serialising mutations inside one worker.

    Cross-worker serialisation comes from ``SELECT ... FOR UPDATE`` on the
    room row; this only keeps coroutines of the same process from
    interleaving their read-decide-write cycles on one room.
    """

    def __init__(self):
        # A lock lives for as long as some coroutine holds or waits on it
        self._locks: "WeakValueDictionary[int, asyncio.Lock]" = WeakValueDictionary()

    def _lock_for(self, room_id: int) -> asyncio.Lock:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[room_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, room_id: int) -> AsyncIterator[None]:
        lock = self._lock_for(room_id)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


room_locks = RoomLocks()
