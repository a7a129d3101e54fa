"""The paste entity."""
from __future__ import annotations
import copy
import hashlib
import hmac
import logging
import time
from typing import Any, Callable, Dict, Optional

from paste_lib.config import Config
from paste_lib.persistence import ServerSalt
from paste_lib.storage.base import StorageBackend
from paste_lib.storage.keys import is_valid_id
from paste_lib.storage.records import paste_flags

from .abstract import AbstractModel
from .comment import Comment
from .errors import (
    DuplicatePasteError,
    InvalidDataError,
    InvalidParentError,
    MissingPasteError,
    PasteExpiredError,
    PasteNotFoundError,
)
from .format import is_valid

logger = logging.getLogger(__name__)

# meta fields that never leave the server
PRIVATE_META = ("expire_date", "created", "postdate", "salt")


class Paste(AbstractModel):
    """A paste addressed by id.

    Data is either submitted through `set_data` and persisted with `store`,
    or fetched with `get`. Storage failures surface as StorageFailureError.
    """

    def __init__(
        self,
        config: Config,
        store: StorageBackend,
        paste_id: Optional[str] = None,
        salt_provider: Optional[ServerSalt] = None,
        hash_provider: Optional[Callable[[], str]] = None,
        icon_generator: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        super().__init__(config, store)
        self._salt_provider = salt_provider or ServerSalt(store)
        self._hash_provider = hash_provider
        self._icon_generator = icon_generator
        if paste_id is not None:
            self.set_id(paste_id)

    def exists(self) -> bool:
        with self._storage("check"):
            return self._store.exists(self.id)

    def delete(self) -> None:
        with self._storage("delete"):
            self._store.delete(self.id)
        logger.info("Deleted paste %s", self.id)

    def set_data(self, data: Any) -> None:
        if not is_valid(data):
            raise InvalidDataError()
        adata = data["adata"]
        if adata[1] not in self._conf.formatter_options:
            raise InvalidDataError("Invalid formatter.")
        if adata[2] not in (0, 1) or adata[3] not in (0, 1):
            raise InvalidDataError()
        if adata[2] == 1 and (not self._conf.discussion or adata[3] == 1):
            raise InvalidDataError("Discussion is not allowed for this paste.")

        record = copy.deepcopy(data)
        meta = record["meta"]
        seconds = self._conf.expire_seconds(meta.pop("expire", None))
        if seconds > 0:
            meta["expire_date"] = int(time.time()) + seconds
        self._data = record
        self._assign_content_id(record["ct"])

    def store(self) -> None:
        if not self._data:
            raise InvalidDataError()
        if self.exists():
            raise DuplicatePasteError()
        meta = self._data["meta"]
        meta["created"] = int(time.time())
        meta["salt"] = ServerSalt.generate()
        with self._storage("store"):
            created = self._store.create(self.id, self._data)
        if not created:
            raise DuplicatePasteError()
        logger.info("Stored paste %s", self.id)

    def get(self) -> Dict[str, Any]:
        """Return the paste as sent to clients.

        Expired pastes are removed and reported as PasteExpiredError.
        Burn-after-reading pastes are removed once this read completes.
        """
        with self._storage("read"):
            data = self._store.read(self.id)
        if data is None:
            raise PasteNotFoundError()

        now = int(time.time())
        meta = data.setdefault("meta", {})
        expire_date = int(meta.get("expire_date", 0) or 0)
        if expire_date > 0 and expire_date < now:
            self.delete()
            raise PasteExpiredError()
        meta["time_to_live"] = expire_date - now if expire_date > 0 else None

        _, burn_after_reading = paste_flags(data)
        comments = list(self.get_comments().values())
        if burn_after_reading:
            self.delete()

        for key in PRIVATE_META:
            meta.pop(key, None)
        data["id"] = self.id
        data["comments"] = comments
        data["comment_count"] = len(comments)
        data["comment_offset"] = 0
        return data

    def get_comments(self) -> Dict[str, Dict[str, Any]]:
        with self._storage("read comments of"):
            comments = self._store.read_comments(self.id)
        if not self._conf.discussion_date_display:
            for comment in comments.values():
                comment["meta"].pop("created", None)
                comment["meta"].pop("postdate", None)
        return comments

    def is_open_discussion(self) -> bool:
        with self._storage("read"):
            data = self._store.read(self.id)
        if data is None:
            return False
        opendiscussion, _ = paste_flags(data)
        return opendiscussion

    def get_delete_token(self) -> str:
        salt = (self._data.get("meta") or {}).get("salt")
        if not salt:
            with self._storage("read"):
                data = self._store.read(self.id)
            if data is None:
                raise PasteNotFoundError()
            salt = (data.get("meta") or {}).get("salt")
        if not salt:
            salt = self._salt_provider.get()
        return hmac.new(salt.encode("utf-8"), self.id.encode("utf-8"), hashlib.sha256).hexdigest()

    def get_comment(self, parent_id: Any, comment_id: Optional[str] = None) -> Comment:
        if not is_valid_id(parent_id):
            raise InvalidParentError()
        if not self.exists():
            raise MissingPasteError()
        comment = Comment(
            self._conf,
            self._store,
            self,
            parent_id=parent_id,
            hash_provider=self._hash_provider,
            icon_generator=self._icon_generator,
        )
        if comment_id is not None:
            comment.set_id(comment_id)
        return comment
