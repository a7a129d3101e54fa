"""Id validation, content addressing and comment thread keys.

Paste and comment ids are 16 lowercase hex characters. Anything else is
rejected before it can be turned into a path or a query parameter.
"""
from __future__ import annotations
import re
from typing import Any, Dict, Iterable, Tuple

from .errors import InvalidKeyError

PASTE_ID_LENGTH = 16
_ID_RE = re.compile(r"[a-f0-9]{%d}" % PASTE_ID_LENGTH)

_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3
_MASK64 = 0xFFFFFFFFFFFFFFFF


def is_valid_id(value: Any) -> bool:
    """Return True if `value` is a well-formed paste or comment id."""
    return isinstance(value, str) and _ID_RE.fullmatch(value) is not None


def ensure_valid_id(value: Any, kind: str = "paste") -> str:
    if not is_valid_id(value):
        raise InvalidKeyError(kind, value)
    return value


def fnv1a64(data: str | bytes) -> str:
    """64 bit FNV-1a digest of `data` as 16 lowercase hex characters."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    h = _FNV64_OFFSET
    for byte in data:
        h ^= byte
        h = (h * _FNV64_PRIME) & _MASK64
    return f"{h:016x}"


def fan_out(paste_id: str) -> Tuple[str, str]:
    """Two directory levels derived from the id prefix."""
    ensure_valid_id(paste_id)
    return paste_id[0:2], paste_id[2:4]


def open_slot(comments: Dict[str, Any], postdate: int) -> str:
    """Return the first unused thread key for `postdate`.

    The plain timestamp is used when free, otherwise `"<postdate>.N"` with
    the smallest free N starting at 1.
    """
    key = str(postdate)
    if key not in comments:
        return key
    n = 1
    while f"{postdate}.{n}" in comments:
        n += 1
    return f"{postdate}.{n}"


def thread_sort_key(key: str) -> Tuple[int, int]:
    base, _, suffix = key.partition(".")
    return int(base), int(suffix or 0)


def build_thread_index(entries: Iterable[Tuple[int, Dict[str, Any]]]) -> Dict[str, Dict[str, Any]]:
    """Key comment records by thread key.

    `entries` must be given in creation order so that comments sharing a
    timestamp get their `.N` suffixes in that order.
    """
    comments: Dict[str, Dict[str, Any]] = {}
    for postdate, record in entries:
        comments[open_slot(comments, postdate)] = record
    return dict(sorted(comments.items(), key=lambda item: thread_sort_key(item[0])))
