"""Logical record shapes shared by all backends.

Backends persist whatever these helpers return, which keeps `read` and
`read_comments` identical no matter where the data lives.
"""
from __future__ import annotations
import copy
from typing import Any, Dict, Tuple

ATTACHMENT_KEYS = ("attachment", "attachmentname")
V2_PAYLOAD_KEYS = ("v", "adata", "ct")


def is_v2(record: Dict[str, Any]) -> bool:
    v = record.get("v")
    return isinstance(v, (int, float)) and not isinstance(v, bool) and v >= 2


def versioned_keys(version: int) -> Tuple[str, str]:
    """Return the (created, icon) meta key names used by a record generation."""
    if version >= 2:
        return "created", "icon"
    return "postdate", "vizhash"


def record_version(record: Dict[str, Any]) -> int:
    return 2 if is_v2(record) else 1


def normalize_paste(paste: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy of `paste` in the current shape.

    Legacy v1 submissions carried attachments next to `data`; they now live
    in `meta`.
    """
    record = copy.deepcopy(paste)
    meta = record.get("meta")
    if not isinstance(meta, dict):
        meta = {}
    record["meta"] = meta
    if not is_v2(record):
        for key in ATTACHMENT_KEYS:
            if key in record:
                meta.setdefault(key, record.pop(key))
    return record


def normalize_comment(comment: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce a comment to its payload and the meta fields backends keep."""
    version = record_version(comment)
    created_key, icon_key = versioned_keys(version)
    src = comment.get("meta") or {}
    meta: Dict[str, Any] = {}

    created = src.get(created_key, src.get("created", src.get("postdate")))
    meta[created_key] = int(created or 0)
    if src.get("nickname"):
        meta["nickname"] = src["nickname"]
    icon = src.get(icon_key, src.get("icon", src.get("vizhash")))
    if icon:
        meta[icon_key] = icon

    if version >= 2:
        record = {k: copy.deepcopy(comment[k]) for k in V2_PAYLOAD_KEYS if k in comment}
    else:
        record = {"data": comment.get("data")}
    record["meta"] = meta
    return record


def paste_postdate(paste: Dict[str, Any]) -> int:
    meta = paste.get("meta") or {}
    return int(meta.get("created", meta.get("postdate", 0)) or 0)


def paste_expire_date(paste: Dict[str, Any]) -> int:
    """Absolute expiry in epoch seconds, 0 when the paste never expires."""
    meta = paste.get("meta") or {}
    return int(meta.get("expire_date", 0) or 0)


def paste_flags(paste: Dict[str, Any]) -> Tuple[bool, bool]:
    """Return (opendiscussion, burnafterreading)."""
    if is_v2(paste):
        adata = paste.get("adata") or []
        if isinstance(adata, list) and len(adata) >= 4:
            return adata[2] == 1, adata[3] == 1
        return False, False
    meta = paste.get("meta") or {}
    return bool(meta.get("opendiscussion")), bool(meta.get("burnafterreading"))


def comment_postdate(comment: Dict[str, Any]) -> int:
    meta = comment.get("meta") or {}
    return int(meta.get("created", meta.get("postdate", 0)) or 0)


def is_expired(paste: Dict[str, Any], now: int) -> bool:
    expire_date = paste_expire_date(paste)
    return 0 < expire_date <= now
