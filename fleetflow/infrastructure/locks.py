"""
Per-entity locks.

Every command of the dispatch core holds the locks of the records it
touches (``vehicle:<id>``, ``driver:<id>``, ``trip:<id>``,
``maintenance:<id>``) for the whole read-validate-write-commit cycle, so
two commands on the same vehicle or driver never interleave.

Two interchangeable registries:

* :class:`LocalLockRegistry` -- ``asyncio.Lock`` per key, for a single
  API process.
* :class:`RedisLockRegistry` -- Redis ``SET NX EX`` per key with an atomic
  Lua check-and-delete on release, for several processes.

Keys are always acquired in sorted order, which rules out deadlock between
commands that need overlapping key sets.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import Counter
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator, Optional, Protocol

import redis.asyncio as aioredis

_RELEASE_LUA = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(Exception):
    """Raised when a lock could not be taken within the wait budget."""

    def __init__(self, key: str):
        super().__init__(f"Could not acquire lock: {key}")
        self.key = key


def lock_key(kind: str, entity_id: int) -> str:
    return f"{kind}:{entity_id}"


class LockRegistry(Protocol):
    def hold(
        self, *keys: str, wait_seconds: Optional[float] = None
    ) -> AbstractAsyncContextManager[None]: ...


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    async def acquire(
        self, wait_seconds: float = 0.0, retry_interval: float = 0.05
    ) -> bool:
        """Try to acquire, polling for up to *wait_seconds*.  True on success."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_seconds
        while True:
            if await self.redis.set(self.key, self.token, nx=True, ex=self.ttl):
                return True
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(retry_interval)

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        await self.redis.eval(_RELEASE_LUA, 1, self.key, self.token)

    # context-manager support
    async def __aenter__(self):
        if not await self.acquire():
            raise LockNotAcquired(self.key)
        return self

    async def __aexit__(self, *args):
        await self.release()


class RedisLockRegistry:
    def __init__(
        self,
        client: aioredis.Redis,
        ttl_seconds: int = 30,
        wait_seconds: float = 5.0,
    ):
        self.redis = client
        self.ttl = ttl_seconds
        self.wait_seconds = wait_seconds

    @asynccontextmanager
    async def hold(
        self, *keys: str, wait_seconds: Optional[float] = None
    ) -> AsyncIterator[None]:
        wait = self.wait_seconds if wait_seconds is None else wait_seconds
        held: list[DistributedLock] = []
        try:
            for key in sorted(set(keys)):
                lock = DistributedLock(self.redis, key, self.ttl)
                if not await lock.acquire(wait_seconds=wait):
                    raise LockNotAcquired(key)
                held.append(lock)
            yield
        finally:
            for lock in reversed(held):
                await lock.release()


class LocalLockRegistry:
    """In-process keyed locks; entries are dropped once nobody uses them."""

    def __init__(self, wait_seconds: float = 5.0):
        self.wait_seconds = wait_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: Counter[str] = Counter()

    def _checkout(self, key: str) -> asyncio.Lock:
        self._users[key] += 1
        return self._locks.setdefault(key, asyncio.Lock())

    def _checkin(self, key: str) -> None:
        self._users[key] -= 1
        if self._users[key] <= 0:
            del self._users[key]
            self._locks.pop(key, None)

    async def _acquire(self, key: str, lock: asyncio.Lock, wait: float) -> None:
        if wait <= 0:
            if lock.locked():
                raise LockNotAcquired(key)
            await lock.acquire()
            return
        try:
            await asyncio.wait_for(lock.acquire(), timeout=wait)
        except asyncio.TimeoutError:
            raise LockNotAcquired(key) from None

    @asynccontextmanager
    async def hold(
        self, *keys: str, wait_seconds: Optional[float] = None
    ) -> AsyncIterator[None]:
        wait = self.wait_seconds if wait_seconds is None else wait_seconds
        ordered = sorted(set(keys))
        checked_out: list[str] = []
        held: list[asyncio.Lock] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                checked_out.append(key)
                await self._acquire(key, lock, wait)
                held.append(lock)
            yield
        finally:
            for lock in reversed(held):
                lock.release()
            for key in checked_out:
                self._checkin(key)

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


def build_lock_registry(settings) -> LockRegistry:
    if settings.lock_backend == "redis":
        from .redis_client import get_client

        return RedisLockRegistry(
            get_client(),
            ttl_seconds=settings.lock_ttl_seconds,
            wait_seconds=settings.lock_wait_seconds,
        )
    return LocalLockRegistry(wait_seconds=settings.lock_wait_seconds)
