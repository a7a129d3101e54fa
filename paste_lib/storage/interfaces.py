from typing import Protocol, Any, Dict, Optional, runtime_checkable


@runtime_checkable
class StorageProtocol(Protocol):
    """Storage backend protocol mirroring `paste_lib.storage.StorageBackend`.

    Implementations should follow the semantics documented on the abstract
    base class in `paste_lib.storage.base` (None for missing pastes, False
    for duplicate keys, KeyError for missing values).
    """

    def exists(self, paste_id: str) -> bool: ...

    def create(self, paste_id: str, paste: Dict[str, Any]) -> bool: ...

    def read(self, paste_id: str) -> Optional[Dict[str, Any]]: ...

    def delete(self, paste_id: str) -> None: ...

    def exists_comment(self, paste_id: str, parent_id: str, comment_id: str) -> bool: ...

    def create_comment(self, paste_id: str, parent_id: str, comment_id: str, comment: Dict[str, Any]) -> bool: ...

    def read_comments(self, paste_id: str) -> Dict[str, Dict[str, Any]]: ...

    def purge(self, batch_size: int) -> int: ...

    def save_value(self, namespace: str, key: str, value: str) -> None: ...

    def load_value(self, namespace: str, key: str) -> str: ...
