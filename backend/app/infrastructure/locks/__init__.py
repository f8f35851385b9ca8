"""
  Per-resource lock utilities.
  Callers import from here:
     from app.infrastructure.locks import ResourceLocker, build_resource_locker
"""
from .resource_lock import ResourceLocker, LocalResourceLocker, RedisResourceLocker, build_resource_locker

__all__ = ["ResourceLocker", "LocalResourceLocker", "RedisResourceLocker", "build_resource_locker"]
