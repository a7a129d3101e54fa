"""Flat-file paste store.

Layout under the configured directory:

    <dir>/<id[0:2]>/<id[2:4]>/<id>.json              paste record
    <dir>/<id[0:2]>/<id[2:4]>/<id>.discussion/        one file per comment,
        <pasteid>.<commentid>.<parentid>.json
    <dir>/expiry/<expire_date:010d>.<id>             empty expiry markers
    <dir>/values/<namespace>/<key>.json              key/value side store

Records are written to a temporary file first and then published with a
hard link, which fails atomically when the target already exists. A reader
therefore never sees a partial record and two writers of the same key can
never both succeed.
"""
from __future__ import annotations
import errno
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ValidationError

from .base import StorageBackend
from .errors import BackendUnavailableError, StorageConfigurationError
from .keys import build_thread_index, ensure_valid_id, fan_out, is_valid_id
from .records import comment_postdate, is_expired, normalize_comment, normalize_paste, paste_expire_date
from .serializer import JSONSerializer

logger = logging.getLogger(__name__)

EXPIRY_DIR = "expiry"
VALUES_DIR = "values"
RECORD_SUFFIX = ".json"
# rmtree passes before giving up on a discussion that keeps receiving comments
RMTREE_ATTEMPTS = 5


class FilesystemOptions(BaseModel):
    dir: str


class FileStorageBackend(StorageBackend):
    def __init__(self, data_dir: str | Path = "./data") -> None:
        self.data_dir = Path(data_dir)
        self._serializer = JSONSerializer()
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BackendUnavailableError(f"cannot use data directory {self.data_dir}: {exc}") from exc

    @classmethod
    def from_options(cls, **options: Any) -> "FileStorageBackend":
        try:
            opts = FilesystemOptions.model_validate(options)
        except ValidationError as exc:
            raise StorageConfigurationError(f"invalid filesystem options: {exc}") from exc
        return cls(data_dir=opts.dir)

    @contextmanager
    def _io_guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except OSError as exc:
            logger.exception("Filesystem store failed to %s", action)
            raise BackendUnavailableError(f"failed to {action}: {exc}") from exc

    # -- paths ---------------------------------------------------------

    def _paste_dir(self, paste_id: str) -> Path:
        first, second = fan_out(paste_id)
        return self.data_dir / first / second

    def _paste_path(self, paste_id: str) -> Path:
        return self._paste_dir(paste_id) / f"{paste_id}{RECORD_SUFFIX}"

    def _discussion_dir(self, paste_id: str) -> Path:
        return self._paste_dir(paste_id) / f"{paste_id}.discussion"

    def _comment_path(self, paste_id: str, parent_id: str, comment_id: str) -> Path:
        ensure_valid_id(parent_id, "parent")
        ensure_valid_id(comment_id, "comment")
        return self._discussion_dir(paste_id) / f"{paste_id}.{comment_id}.{parent_id}{RECORD_SUFFIX}"

    def _expiry_marker(self, paste_id: str, expire_date: int) -> Path:
        return self.data_dir / EXPIRY_DIR / f"{expire_date:010d}.{paste_id}"

    def _value_path(self, namespace: str, key: str) -> Path:
        safe_ns = namespace.replace("/", "_")
        safe_key = key.replace("/", "_")
        return self.data_dir / VALUES_DIR / safe_ns / f"{safe_key}{RECORD_SUFFIX}"

    # -- low level -----------------------------------------------------

    def _publish(self, path: Path, payload: bytes) -> bool:
        """Write `payload` to `path` unless it exists. Returns False if it did."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            try:
                os.link(tmp, path)
            except FileExistsError:
                return False
            return True
        finally:
            Path(tmp).unlink(missing_ok=True)

    def _load(self, path: Path) -> Optional[Dict[str, Any]]:
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        try:
            return self._serializer.load(data)
        except ValueError as exc:
            raise BackendUnavailableError(f"corrupt record {path.name}: {exc}") from exc

    def _remove_discussion(self, paste_id: str) -> None:
        """Remove the comment directory of an already unlinked paste.

        A concurrent `create_comment` may still add and withdraw files while
        the tree is removed, so vanishing and late entries are tolerated.
        """
        directory = self._discussion_dir(paste_id)
        for _ in range(RMTREE_ATTEMPTS):
            try:
                shutil.rmtree(directory)
            except FileNotFoundError:
                pass
            except OSError as exc:
                if exc.errno not in (errno.ENOTEMPTY, errno.EEXIST):
                    raise
            if not directory.exists():
                return
        logger.warning("Discussion of deleted paste %s is still being written to", paste_id)

    def _drop_stale_markers(self, paste_id: str, now: int) -> None:
        directory = self.data_dir / EXPIRY_DIR
        for marker in directory.glob(f"*.{paste_id}"):
            stamp = marker.name.partition(".")[0]
            if stamp.isdigit() and int(stamp) <= now:
                marker.unlink(missing_ok=True)

    # -- pastes --------------------------------------------------------

    def exists(self, paste_id: str) -> bool:
        return self._paste_path(paste_id).is_file()

    def create(self, paste_id: str, paste: Dict[str, Any]) -> bool:
        record = normalize_paste(paste)
        path = self._paste_path(paste_id)
        with self._io_guard("create paste"):
            if not self._publish(path, self._serializer.dump(record)):
                return False
            expire_date = paste_expire_date(record)
            if expire_date > 0:
                marker = self._expiry_marker(paste_id, expire_date)
                marker.parent.mkdir(parents=True, exist_ok=True)
                marker.touch()
        return True

    def read(self, paste_id: str) -> Optional[Dict[str, Any]]:
        path = self._paste_path(paste_id)
        with self._io_guard("read paste"):
            return self._load(path)

    def delete(self, paste_id: str) -> None:
        path = self._paste_path(paste_id)
        with self._io_guard("delete paste"):
            record = self._load(path)
            path.unlink(missing_ok=True)
            self._remove_discussion(paste_id)
            if record is not None and paste_expire_date(record) > 0:
                self._expiry_marker(paste_id, paste_expire_date(record)).unlink(missing_ok=True)

    # -- comments ------------------------------------------------------

    def exists_comment(self, paste_id: str, parent_id: str, comment_id: str) -> bool:
        return self._comment_path(paste_id, parent_id, comment_id).is_file()

    def create_comment(self, paste_id: str, parent_id: str, comment_id: str, comment: Dict[str, Any]) -> bool:
        record = normalize_comment(comment)
        path = self._comment_path(paste_id, parent_id, comment_id)
        with self._io_guard("create comment"):
            if not self.exists(paste_id):
                return False
            try:
                published = self._publish(path, self._serializer.dump(record))
            except FileNotFoundError:
                # delete() removed the discussion directory under us
                if not self.exists(paste_id):
                    return False
                raise
            if not published:
                return False
            # the paste may have been deleted while we were writing
            if not self.exists(paste_id):
                path.unlink(missing_ok=True)
                return False
        return True

    def read_comments(self, paste_id: str) -> Dict[str, Dict[str, Any]]:
        directory = self._discussion_dir(paste_id)
        found = []
        with self._io_guard("read comments"):
            try:
                names = [name for name in os.listdir(directory) if name.endswith(RECORD_SUFFIX)]
            except FileNotFoundError:
                return {}
            for name in names:
                parts = name[: -len(RECORD_SUFFIX)].split(".")
                if len(parts) != 3:
                    continue
                _, comment_id, parent_id = parts
                path = directory / name
                try:
                    created_ns = path.stat().st_mtime_ns
                except FileNotFoundError:
                    continue
                record = self._load(path)
                if record is None:
                    continue
                record["id"] = comment_id
                record["parentid"] = parent_id
                found.append((comment_postdate(record), created_ns, name, record))
        found.sort(key=lambda entry: entry[:3])
        return build_thread_index((postdate, record) for postdate, _, _, record in found)

    # -- values --------------------------------------------------------

    def save_value(self, namespace: str, key: str, value: str) -> None:
        path = self._value_path(namespace, key)
        with self._io_guard("save value"):
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            with open(tmp, "wb") as f:
                f.write(self._serializer.dump({"value": value}))
                f.flush()
                os.fsync(f.fileno())
            tmp.replace(path)

    def load_value(self, namespace: str, key: str) -> str:
        path = self._value_path(namespace, key)
        with self._io_guard("load value"):
            stored = self._load(path)
        if stored is None:
            raise KeyError(key)
        return stored["value"]

    # -- purge ---------------------------------------------------------

    def _get_expired_pastes(self, batch_size: int, now: int) -> List[str]:
        directory = self.data_dir / EXPIRY_DIR
        with self._io_guard("list expiry index"):
            try:
                names = sorted(os.listdir(directory))
            except FileNotFoundError:
                return []
        ids: List[str] = []
        for name in names:
            stamp, _, paste_id = name.partition(".")
            if not stamp.isdigit() or not is_valid_id(paste_id):
                continue
            # zero padded stamps sort chronologically
            if int(stamp) > now:
                break
            if paste_id not in ids:
                ids.append(paste_id)
            if len(ids) >= batch_size:
                break
        return ids

    def _delete_expired(self, paste_id: str, now: int) -> bool:
        with self._io_guard("purge paste"):
            record = self._load(self._paste_path(paste_id))
            if record is None or not is_expired(record, now):
                self._drop_stale_markers(paste_id, now)
                return False
        self.delete(paste_id)
        return True
