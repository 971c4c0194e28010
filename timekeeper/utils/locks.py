"""키 단위 비동기 락 모듈.

Per-key asyncio locks used to serialize read-check-write sequences inside a
single process (one AttendanceDay, one leave quota bucket). Cross-process
safety comes from the row locks and constraints in the database; this layer
keeps concurrent requests in the same worker from racing each other first.

Usage:
    async with attendance_day_locks.hold((org_id, user_id, work_date)):
        ...
"""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLock:
    """키별 asyncio.Lock 레지스트리.

    Registry of asyncio locks keyed by an arbitrary hashable. Entries are
    reference-counted and dropped once no task holds or waits on them.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock: asyncio.Lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]


# 싱글턴 인스턴스: Singleton lock registries
attendance_day_locks: KeyedLock = KeyedLock()
leave_quota_locks: KeyedLock = KeyedLock()
