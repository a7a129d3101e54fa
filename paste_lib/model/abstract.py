"""Behaviour shared by the paste and comment entities."""
from __future__ import annotations
import logging
import secrets
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Type

from paste_lib.config import Config
from paste_lib.storage.base import StorageBackend
from paste_lib.storage.errors import StorageError
from paste_lib.storage.keys import PASTE_ID_LENGTH, fnv1a64, is_valid_id

from .errors import InvalidPasteIdError, ModelError, StorageFailureError

logger = logging.getLogger(__name__)


class AbstractModel:
    """An id plus a lazily fetched record, bound to one store."""

    id_error: Type[ModelError] = InvalidPasteIdError

    def __init__(self, config: Config, store: StorageBackend) -> None:
        self._conf = config
        self._store = store
        self._id: str | None = None
        self._id_explicit = False
        self._data: Dict[str, Any] = {}

    @property
    def id(self) -> str:
        if self._id is None:
            self._id = secrets.token_hex(PASTE_ID_LENGTH // 2)
        return self._id

    def set_id(self, value: Any) -> None:
        """Use a caller supplied id. Validated before any storage call."""
        if not is_valid_id(value):
            raise self.id_error()
        self._id = value
        self._id_explicit = True

    def _assign_content_id(self, ciphertext: str) -> None:
        # content addressed unless the caller chose the id
        if not self._id_explicit:
            self._id = fnv1a64(ciphertext)

    @contextmanager
    def _storage(self, action: str) -> Iterator[None]:
        try:
            yield
        except StorageError as exc:
            logger.error("Storage failure while trying to %s %s: %s", action, self._id, exc)
            raise StorageFailureError() from exc
