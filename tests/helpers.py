"""Fixture records shared by the storage and entity tests.

Usage in tests:
    from tests.helpers import paste_post, stored_paste
"""
from __future__ import annotations
import base64
import hashlib
import threading
import time
from typing import Any, Callable, Dict, List, Optional

PASTE_ID = "5b65a01b43987bc2"
OTHER_PASTE_ID = "a242ab7bdfb2581a"
COMMENT_ID = "f4ab3e0c8c0e6a31"
OTHER_COMMENT_ID = "0c4e5e1a7ba0d1b2"

CIPHER = ["gMSNoLOk4z0RnmsYwXZ8mw==", "TZO+JWuIuxs=", 100000, 256, 128, "aes", "gcm", "zlib"]


def random_ct(seed: str = "paste") -> str:
    """Base64 text that does not compress, like real ciphertext."""
    raw = b"".join(hashlib.sha512(f"{seed}:{i}".encode()).digest() for i in range(4))
    return base64.b64encode(raw).decode("ascii")


def paste_post(
    seed: str = "paste",
    expire: str = "5min",
    formatter: str = "plaintext",
    opendiscussion: int = 1,
    burnafterreading: int = 0,
) -> Dict[str, Any]:
    """A paste as submitted by a client."""
    return {
        "v": 2,
        "adata": [list(CIPHER), formatter, opendiscussion, burnafterreading],
        "ct": random_ct(seed),
        "meta": {"expire": expire},
    }


def comment_post(seed: str = "comment", paste_id: str = PASTE_ID, parent_id: Optional[str] = None) -> Dict[str, Any]:
    """A comment as submitted by a client."""
    return {
        "v": 2,
        "adata": list(CIPHER),
        "ct": random_ct(seed),
        "pasteid": paste_id,
        "parentid": parent_id or paste_id,
    }


def stored_paste(
    seed: str = "paste",
    created: Optional[int] = None,
    expire_date: Optional[int] = None,
    opendiscussion: int = 1,
    burnafterreading: int = 0,
) -> Dict[str, Any]:
    """A v2 paste record as the entity layer hands it to a store."""
    meta: Dict[str, Any] = {
        "created": int(time.time()) if created is None else created,
        "salt": base64.b64encode(hashlib.sha256(seed.encode()).digest()).decode("ascii"),
    }
    if expire_date is not None:
        meta["expire_date"] = expire_date
    return {
        "v": 2,
        "adata": [list(CIPHER), "plaintext", opendiscussion, burnafterreading],
        "ct": random_ct(seed),
        "meta": meta,
    }


def stored_comment(seed: str = "comment", created: Optional[int] = None, icon: Optional[str] = None) -> Dict[str, Any]:
    meta: Dict[str, Any] = {"created": int(time.time()) if created is None else created}
    if icon:
        meta["icon"] = icon
    return {"v": 2, "adata": list(CIPHER), "ct": random_ct(seed), "meta": meta}


def legacy_paste(postdate: int = 1344803344, expire_date: Optional[int] = None) -> Dict[str, Any]:
    """A v1 paste with its attachment still next to the data."""
    meta: Dict[str, Any] = {
        "postdate": postdate,
        "opendiscussion": True,
        "burnafterreading": False,
    }
    if expire_date is not None:
        meta["expire_date"] = expire_date
    return {
        "data": '{"iv":"EN39/wd5Nk8HAiSG2K5AsQ","v":1,"iter":1000,"ks":128,"ts":64,"mode":"ccm","cipher":"aes","salt":"QKN1DBXe5PI","ct":"8hA83xDdXjD7K2qfmw5NdA"}',
        "meta": meta,
        "attachment": "data:text/plain;base64,SGVsbG8=",
        "attachmentname": "hello.txt",
    }


def legacy_comment(postdate: int = 1344803528) -> Dict[str, Any]:
    return {
        "data": '{"iv":"Pd4pOKWkmDTT9uPwVwd5Ag","v":1,"iter":1000,"ks":128,"ts":64,"mode":"ccm","cipher":"aes","salt":"ZIUhFTliVz4","ct":"6nOCU3peNDclDDpFtJEBKA"}',
        "meta": {
            "postdate": postdate,
            "nickname": '{"iv":"76MkAtOGC4oFogX/aSMxRA","v":1,"ct":"cFuW4ZMeiyZ78D8ZDAUx"}',
            "vizhash": "data:image/png;base64,iVBORw0KGgo=",
        },
    }


def race(workers: List[Callable[[], Any]]) -> List[Any]:
    """Run `workers` on their own threads, released together.

    Returns each worker's result, or the exception it raised, in order.
    """
    barrier = threading.Barrier(len(workers))
    results: List[Any] = [None] * len(workers)

    def run(index: int, work: Callable[[], Any]) -> None:
        barrier.wait()
        try:
            results[index] = work()
        except Exception as exc:
            results[index] = exc

    threads = [threading.Thread(target=run, args=(i, work)) for i, work in enumerate(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results
