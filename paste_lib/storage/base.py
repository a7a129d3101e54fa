"""Storage backend interface definitions.

Defines the StorageBackend abstract class every paste store implements.
Implementations translate the logical paste and comment records into
whatever layout the backend uses, and must return them unchanged.
"""
from __future__ import annotations
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract paste store.

    Implementations must make `create` and `create_comment` insert-if-absent
    using the backend's own atomic primitive, so that concurrent writers of
    the same key never both succeed.
    """

    @abstractmethod
    def exists(self, paste_id: str) -> bool:
        """Return True if a paste with `paste_id` is stored."""

    @abstractmethod
    def create(self, paste_id: str, paste: Dict[str, Any]) -> bool:
        """Store `paste` under `paste_id`.

        Returns False without touching the stored data if the id is taken.
        """

    @abstractmethod
    def read(self, paste_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored paste record or None if it does not exist."""

    @abstractmethod
    def delete(self, paste_id: str) -> None:
        """Delete a paste together with all of its comments.

        Deleting an unknown id is not an error.
        """

    @abstractmethod
    def exists_comment(self, paste_id: str, parent_id: str, comment_id: str) -> bool:
        """Return True if the comment triple is stored."""

    @abstractmethod
    def create_comment(self, paste_id: str, parent_id: str, comment_id: str, comment: Dict[str, Any]) -> bool:
        """Store a comment.

        Returns False if the triple already exists or the paste does not.
        """

    @abstractmethod
    def read_comments(self, paste_id: str) -> Dict[str, Dict[str, Any]]:
        """Return all comments of a paste keyed by thread key."""

    @abstractmethod
    def save_value(self, namespace: str, key: str, value: str) -> None:
        """Persist a small text value outside of the paste records."""

    @abstractmethod
    def load_value(self, namespace: str, key: str) -> str:
        """Return a value stored with `save_value`. Raise `KeyError` if absent."""

    @abstractmethod
    def _get_expired_pastes(self, batch_size: int, now: int) -> List[str]:
        """Return up to `batch_size` ids whose expiry lies in (0, now]."""

    @abstractmethod
    def _delete_expired(self, paste_id: str, now: int) -> bool:
        """Delete the paste and its comments if its stored expiry is in (0, now].

        The expiry must be read from storage at deletion time, not taken
        from the candidate list, so a paste recreated in the meantime
        survives. Returns True if the paste was deleted.
        """

    def purge(self, batch_size: int) -> int:
        """Delete up to `batch_size` expired pastes and return how many went.

        This is an incremental sweep; callers invoke it repeatedly until the
        backlog is drained.
        """
        if batch_size < 1:
            return 0
        now = int(time.time())
        removed = 0
        for paste_id in self._get_expired_pastes(batch_size, now):
            if self._delete_expired(paste_id, now):
                removed += 1
        if removed:
            logger.info("Purged %d expired paste(s) from %s", removed, type(self).__name__)
        else:
            logger.debug("Purge found nothing to delete in %s", type(self).__name__)
        return removed
