"""
PURPOSE: Keyed asyncio locks giving a single writer per key.

Used by the storage layer to serialize get-or-create on a state hash and
read-modify-write Q-value updates on a (state, action) pair.
"""

import asyncio
from typing import Hashable


class KeyedLocks:
    """
    Lazily creates one asyncio.Lock per key.

    Locks are never evicted; the key space (state hashes and state/action
    pairs) is bounded by the discretized feature space.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}

    def get(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
