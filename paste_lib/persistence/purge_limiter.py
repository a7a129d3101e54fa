"""Rate limit for the expiry sweep.

Request handlers may call `can_purge` on every request; it answers True at
most once per `limit` seconds across all processes sharing the store.
"""
from __future__ import annotations
import logging
import time

from paste_lib.storage.base import StorageBackend

logger = logging.getLogger(__name__)

NAMESPACE = "purge_limiter"
KEY = "last_run"


class PurgeLimiter:
    def __init__(self, storage: StorageBackend, limit: int = 300) -> None:
        self._storage = storage
        self.limit = limit

    def can_purge(self) -> bool:
        if self.limit < 1:
            return True
        now = int(time.time())
        try:
            last_run = int(self._storage.load_value(NAMESPACE, KEY))
        except (KeyError, ValueError):
            last_run = 0
        if last_run + self.limit > now:
            logger.debug("Purge skipped, last run %ds ago", now - last_run)
            return False
        self._storage.save_value(NAMESPACE, KEY, str(now))
        return True
