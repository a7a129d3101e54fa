"""Simple memory-backed paste store

This backend keeps pastes, comments and values in process memory. It is
meant for development servers and tests; nothing survives a restart.
"""
from __future__ import annotations
import copy
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple

from .base import StorageBackend
from .keys import build_thread_index
from .records import comment_postdate, is_expired, normalize_comment, normalize_paste, paste_expire_date


class MemoryStorage(StorageBackend):
    def __init__(self) -> None:
        self._lock = RLock()
        self._pastes: Dict[str, Dict[str, Any]] = {}
        # paste id -> {(parent id, comment id): record}, insertion ordered
        self._comments: Dict[str, Dict[Tuple[str, str], Dict[str, Any]]] = {}
        self._values: Dict[Tuple[str, str], str] = {}

    def exists(self, paste_id: str) -> bool:
        with self._lock:
            return paste_id in self._pastes

    def create(self, paste_id: str, paste: Dict[str, Any]) -> bool:
        record = normalize_paste(paste)
        with self._lock:
            if paste_id in self._pastes:
                return False
            self._pastes[paste_id] = record
            return True

    def read(self, paste_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._pastes.get(paste_id)
            return copy.deepcopy(record) if record is not None else None

    def delete(self, paste_id: str) -> None:
        with self._lock:
            self._pastes.pop(paste_id, None)
            self._comments.pop(paste_id, None)

    def exists_comment(self, paste_id: str, parent_id: str, comment_id: str) -> bool:
        with self._lock:
            return (parent_id, comment_id) in self._comments.get(paste_id, {})

    def create_comment(self, paste_id: str, parent_id: str, comment_id: str, comment: Dict[str, Any]) -> bool:
        record = normalize_comment(comment)
        with self._lock:
            if paste_id not in self._pastes:
                return False
            thread = self._comments.setdefault(paste_id, {})
            if (parent_id, comment_id) in thread:
                return False
            thread[(parent_id, comment_id)] = record
            return True

    def read_comments(self, paste_id: str) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            thread = list(self._comments.get(paste_id, {}).items())
        entries = []
        for (parent_id, comment_id), record in thread:
            item = copy.deepcopy(record)
            item["id"] = comment_id
            item["parentid"] = parent_id
            entries.append((comment_postdate(record), item))
        entries.sort(key=lambda entry: entry[0])
        return build_thread_index(entries)

    def save_value(self, namespace: str, key: str, value: str) -> None:
        with self._lock:
            self._values[(namespace, key)] = value

    def load_value(self, namespace: str, key: str) -> str:
        with self._lock:
            try:
                return self._values[(namespace, key)]
            except KeyError:
                raise KeyError(key)

    def _get_expired_pastes(self, batch_size: int, now: int) -> List[str]:
        with self._lock:
            expired = [
                (paste_expire_date(record), pid)
                for pid, record in self._pastes.items()
                if is_expired(record, now)
            ]
        expired.sort()
        return [pid for _, pid in expired[:batch_size]]

    def _delete_expired(self, paste_id: str, now: int) -> bool:
        with self._lock:
            record = self._pastes.get(paste_id)
            if record is None or not is_expired(record, now):
                return False
            self.delete(paste_id)
            return True
