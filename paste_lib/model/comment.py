"""The comment entity."""
from __future__ import annotations
import copy
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from paste_lib.config import Config
from paste_lib.storage.base import StorageBackend
from paste_lib.storage.keys import is_valid_id

from .abstract import AbstractModel
from .errors import (
    CommentNotFoundError,
    DuplicateCommentError,
    InvalidDataError,
    InvalidParentError,
    ParentDeletedError,
    PasteNotFoundError,
    UnsupportedOperationError,
)
from .format import is_valid

if TYPE_CHECKING:
    from .paste import Paste

logger = logging.getLogger(__name__)

PAYLOAD_KEYS = ("v", "adata", "ct", "meta")


class Comment(AbstractModel):
    """A comment on a paste, replying to the paste itself or to another comment."""

    def __init__(
        self,
        config: Config,
        store: StorageBackend,
        paste: "Paste",
        parent_id: Optional[str] = None,
        hash_provider: Optional[Callable[[], str]] = None,
        icon_generator: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        super().__init__(config, store)
        self._paste = paste
        self._parent_id: Optional[str] = None
        self._hash_provider = hash_provider
        self._icon_generator = icon_generator
        if parent_id is not None:
            self.set_parent_id(parent_id)

    @property
    def paste(self) -> "Paste":
        return self._paste

    @property
    def parent_id(self) -> str:
        return self._parent_id or self._paste.id

    def set_parent_id(self, value: Any) -> None:
        if not is_valid_id(value):
            raise InvalidParentError()
        self._parent_id = value

    def set_data(self, data: Any) -> None:
        if not is_valid(data, is_comment=True):
            raise InvalidDataError()
        record = {key: copy.deepcopy(data[key]) for key in PAYLOAD_KEYS if key in data}
        meta = record.get("meta") or {}
        record["meta"] = meta
        if self._icon_generator is not None and self._hash_provider is not None:
            icon = self._icon_generator(self._hash_provider())
            if icon:
                meta["icon"] = icon
        self._data = record
        self._assign_content_id(record["ct"])

    def exists(self) -> bool:
        with self._storage("check comment"):
            return self._store.exists_comment(self._paste.id, self.parent_id, self.id)

    def store(self) -> None:
        if not self._paste.exists():
            raise ParentDeletedError()
        if not self._conf.discussion or not self._paste.is_open_discussion():
            raise InvalidDataError("Discussion is not enabled for this paste.")
        if not self._data:
            raise InvalidDataError()
        if self.exists():
            raise DuplicateCommentError()

        self._data["meta"]["created"] = int(time.time())
        with self._storage("store comment"):
            created = self._store.create_comment(self._paste.id, self.parent_id, self.id, self._data)
        if not created:
            # the paste may have been deleted between the checks and the insert
            if not self._paste.exists():
                raise ParentDeletedError()
            raise DuplicateCommentError()
        logger.info("Stored comment %s on paste %s", self.id, self._paste.id)

    def get(self) -> Dict[str, Any]:
        comments = self._paste.get_comments()
        for comment in comments.values():
            if comment.get("id") == self.id and comment.get("parentid") == self.parent_id:
                self._data = comment
                return comment
        if not self._paste.exists():
            raise PasteNotFoundError()
        raise CommentNotFoundError()

    def delete(self) -> None:
        raise UnsupportedOperationError()
