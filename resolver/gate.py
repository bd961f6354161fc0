from __future__ import annotations

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class ResolutionGate:
    """
    At most one resolution in flight per process.

    Waiters block on an asyncio.Lock instead of polling. Releasing a gate that
    is not held is a logged no-op, so a double release can never open a
    second slot. Scoped to one process; nothing is coordinated across replicas.
    """

    def __init__(self) -> None:
        self._lock: Optional[asyncio.Lock] = None
        self._waiting = 0

    def _get_lock(self) -> asyncio.Lock:
        # created lazily so the gate can be built outside a running loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def active(self) -> int:
        return 1 if self._lock is not None and self._lock.locked() else 0

    @property
    def waiting(self) -> int:
        return self._waiting

    async def acquire(self) -> None:
        lock = self._get_lock()
        if lock.locked():
            logger.debug("Gate busy; waiting (queued=%d)", self._waiting + 1)
        self._waiting += 1
        try:
            await lock.acquire()
        finally:
            self._waiting -= 1

    def release(self) -> None:
        lock = self._lock
        if lock is None or not lock.locked():
            logger.debug("Gate release ignored: not held")
            return
        lock.release()

    async def __aenter__(self) -> "ResolutionGate":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
