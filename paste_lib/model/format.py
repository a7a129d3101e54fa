"""Structural validation of submitted (v2) pastes and comments.

The server never decrypts anything; it only checks that the authenticated
data has the expected shape and sane cipher parameters.
"""
from __future__ import annotations
import base64
import binascii
import zlib
from typing import Any

PASTE_KEYS = frozenset({"adata", "v", "ct", "meta"})
COMMENT_KEYS = frozenset({"adata", "v", "ct"})
COMMENT_OPTIONAL_KEYS = frozenset({"meta", "pasteid", "parentid"})

KEY_SIZES = (128, 196, 256)
TAG_SIZES = (64, 96, 128)
MODES = ("ctr", "cbc", "gcm")
COMPRESSIONS = ("zlib", "none")
MIN_ITERATIONS = 10000


def _b64decode(value: Any) -> bytes | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _compresses(data: bytes) -> bool:
    # raw deflate, no zlib header
    compressor = zlib.compressobj(9, zlib.DEFLATED, -15)
    deflated = compressor.compress(data) + compressor.flush()
    return len(deflated) < len(data)


def _valid_cipher_params(params: Any) -> bool:
    if not isinstance(params, list) or len(params) != 8:
        return False
    iv, salt, iterations, key_size, tag_size, algorithm, mode, compression = params
    if _b64decode(iv) is None or len(iv) > 24:
        return False
    if _b64decode(salt) is None or len(salt) > 14:
        return False
    if not _is_int(iterations) or iterations <= MIN_ITERATIONS:
        return False
    if key_size not in KEY_SIZES or not _is_int(key_size):
        return False
    if tag_size not in TAG_SIZES or not _is_int(tag_size):
        return False
    return algorithm == "aes" and mode in MODES and compression in COMPRESSIONS


def is_valid(message: Any, is_comment: bool = False) -> bool:
    """Return True if `message` is a well-formed v2 paste or comment."""
    if not isinstance(message, dict):
        return False
    keys = set(message)
    if is_comment:
        if not COMMENT_KEYS <= keys or not keys <= COMMENT_KEYS | COMMENT_OPTIONAL_KEYS:
            return False
    elif keys != PASTE_KEYS:
        return False

    version = message["v"]
    if isinstance(version, bool) or not isinstance(version, (int, float)) or version < 2:
        return False

    adata = message["adata"]
    if is_comment:
        cipher_params = adata
    else:
        if not isinstance(adata, list) or len(adata) != 4:
            return False
        cipher_params = adata[0]
        if not isinstance(adata[1], str) or not _is_int(adata[2]) or not _is_int(adata[3]):
            return False
    if not _valid_cipher_params(cipher_params):
        return False

    ct = _b64decode(message["ct"])
    if ct is None:
        return False
    # reject data with too little entropy to be ciphertext
    if _compresses(ct):
        return False

    meta = message.get("meta")
    if is_comment:
        return meta is None or isinstance(meta, dict)
    return isinstance(meta, dict) and set(meta) == {"expire"}
