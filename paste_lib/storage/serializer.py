from typing import Any, Protocol
import json
import yaml


class Serializer(Protocol):
    """Serialize/deserialize Python values for backends that store bytes/text.

    Implementations should be symmetric: `dump` -> bytes, `load` <- bytes.
    """

    def dump(self, value: Any) -> bytes: ...

    def load(self, data: bytes) -> Any: ...


class JSONSerializer:
    """Serializer using JSON (text). Caller must ensure values are JSON-serializable.

    Keys are not sorted so records come back with their original key order.
    """

    def dump(self, value: Any) -> bytes:
        return json.dumps(value, separators=(",", ":")).encode("utf-8")

    def load(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"))


class YAMLSerializer:
    """Serializer using YAML (text). Caller must ensure values are YAML-serializable."""

    def dump(self, value: Any) -> bytes:
        return yaml.safe_dump(value, sort_keys=False).encode("utf-8")

    def load(self, data: bytes) -> Any:
        return yaml.safe_load(data.decode("utf-8"))
