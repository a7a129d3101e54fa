"""Entity layer: pastes and comments on top of a paste store."""
from __future__ import annotations
import logging
from typing import Callable, Optional

from paste_lib.config import Config
from paste_lib.persistence import PurgeLimiter, ServerSalt
from paste_lib.storage import create_storage
from paste_lib.storage.base import StorageBackend
from paste_lib.storage.errors import StorageError

from .comment import Comment
from .errors import (
    CommentNotFoundError,
    DuplicateCommentError,
    DuplicatePasteError,
    InvalidDataError,
    InvalidParentError,
    InvalidPasteIdError,
    MissingPasteError,
    ModelError,
    ParentDeletedError,
    PasteExpiredError,
    PasteNotFoundError,
    StorageFailureError,
    UnsupportedOperationError,
)
from .paste import Paste

logger = logging.getLogger(__name__)


class Model:
    """Factory for entities sharing one configured store.

    The store is built from `config.model` / `config.model_options` unless
    one is injected.
    """

    def __init__(
        self,
        config: Config,
        store: Optional[StorageBackend] = None,
        salt_provider: Optional[ServerSalt] = None,
        hash_provider: Optional[Callable[[], str]] = None,
        icon_generator: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        self._conf = config
        if store is None:
            try:
                store = create_storage(config.model, **config.model_options)
            except StorageError as exc:
                logger.error("Cannot open the %s paste store: %s", config.model, exc)
                raise StorageFailureError() from exc
        self._store = store
        self._salt_provider = salt_provider or ServerSalt(store)
        self._hash_provider = hash_provider
        self._icon_generator = icon_generator
        self._purge_limiter = PurgeLimiter(store, config.purge_limit)

    @property
    def store(self) -> StorageBackend:
        return self._store

    def get_paste(self, paste_id: Optional[str] = None) -> Paste:
        return Paste(
            self._conf,
            self._store,
            paste_id=paste_id,
            salt_provider=self._salt_provider,
            hash_provider=self._hash_provider,
            icon_generator=self._icon_generator,
        )

    def purge(self, batch_size: Optional[int] = None) -> int:
        """Remove up to `batch_size` expired pastes, returning how many went."""
        size = self._conf.purge_batchsize if batch_size is None else batch_size
        try:
            return self._store.purge(size)
        except StorageError as exc:
            logger.error("Purge failed: %s", exc)
            raise StorageFailureError() from exc

    def maybe_purge(self, batch_size: Optional[int] = None) -> int:
        """Purge only if the last sweep is older than the configured limit."""
        try:
            allowed = self._purge_limiter.can_purge()
        except StorageError as exc:
            raise StorageFailureError() from exc
        if not allowed:
            return 0
        return self.purge(batch_size)


__all__ = [
    "Model",
    "Paste",
    "Comment",
    "ModelError",
    "InvalidPasteIdError",
    "PasteExpiredError",
    "PasteNotFoundError",
    "InvalidParentError",
    "MissingPasteError",
    "CommentNotFoundError",
    "ParentDeletedError",
    "InvalidDataError",
    "DuplicateCommentError",
    "UnsupportedOperationError",
    "DuplicatePasteError",
    "StorageFailureError",
]
