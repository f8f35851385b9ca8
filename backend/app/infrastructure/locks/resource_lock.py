# app/infrastructure/locks/resource_lock.py
from __future__ import annotations
import threading, logging
from contextlib import contextmanager
from typing import Dict, Iterator

import redis

from app.core.config import settings
from app.services.errors import ResourceBusyError


logger = logging.getLogger(__name__)


"""
Mutual exclusion for the multi-key metafield writes on one resource.
    key: {prefix}:{shop}:{resource_type}:{resource_id}

    hold(key) waits up to wait_sec, then raises ResourceBusyError (HTTP 409).
      - RedisResourceLocker: shared across workers/hosts; ttl_sec bounds a crashed holder
      - LocalResourceLocker: one process only (dev / tests / single worker)
"""
class ResourceLocker:

    def __init__(self, prefix: str, wait_sec: float):
        self.prefix = prefix
        self.wait_sec = max(0.0, float(wait_sec))

    def key_for(self, shop: str, resource_type: str, resource_id: str) -> str:
        return f"{self.prefix}:{shop}:{resource_type}:{resource_id}"

    def hold(self, key: str):
        """Context manager; subclasses implement it."""
        raise NotImplementedError


class LocalResourceLocker(ResourceLocker):

    def __init__(self, prefix: str = "asb:lock", wait_sec: float = 10.0):
        super().__init__(prefix, wait_sec)
        self._guard = threading.Lock()
        # key -> [lock, holders + waiters]; dropped when the count reaches zero
        self._locks: Dict[str, list] = {}

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                return
            entry[1] -= 1
            if entry[1] <= 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=self.wait_sec):
                logger.warning("lock.busy backend=local key=%s wait_sec=%s", key, self.wait_sec)
                raise ResourceBusyError(f"resource is busy: {key}")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)


class RedisResourceLocker(ResourceLocker):

    def __init__(self, client: redis.Redis, prefix: str = "asb:lock", ttl_sec: int = 120, wait_sec: float = 10.0):
        super().__init__(prefix, wait_sec)
        self.r = client
        self.ttl_sec = max(1, int(ttl_sec))

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self.r.lock(key, timeout=self.ttl_sec, blocking_timeout=self.wait_sec)
        if not lock.acquire(blocking=True):
            logger.warning("lock.busy backend=redis key=%s wait_sec=%s", key, self.wait_sec)
            raise ResourceBusyError(f"resource is busy: {key}")
        try:
            yield
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError:
                # ttl expired while we were still working; another holder may already own it
                logger.warning("lock.expired_before_release key=%s ttl_sec=%s", key, self.ttl_sec)


_locker: ResourceLocker | None = None


def build_resource_locker() -> ResourceLocker:
    """REDIS_URL set -> Redis lock; otherwise one process-wide local registry. Built once per process."""
    global _locker
    if _locker is not None:
        return _locker
    if settings.REDIS_URL:
        _locker = RedisResourceLocker(
            redis.Redis.from_url(settings.REDIS_URL),
            prefix=settings.RESOURCE_LOCK_PREFIX,
            ttl_sec=settings.RESOURCE_LOCK_TTL_SEC,
            wait_sec=settings.RESOURCE_LOCK_WAIT_SEC,
        )
    else:
        _locker = LocalResourceLocker(settings.RESOURCE_LOCK_PREFIX, settings.RESOURCE_LOCK_WAIT_SEC)
    return _locker
