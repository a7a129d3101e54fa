"""Storage failure taxonomy.

"Not found" and "duplicate" are not exceptions: `read` returns `None` and
`create`/`create_comment` return `False`. The classes below cover the
conditions a caller cannot recover from by choosing another id.
"""


class StorageError(Exception):
    """Base class for all storage layer failures."""


class StorageConfigurationError(StorageError):
    """Raised when a backend is unknown or its options are missing/invalid.

    Always raised before any storage call is attempted.
    """


class BackendUnavailableError(StorageError):
    """Raised when a configured backend cannot be reached or fails on I/O."""


class InvalidKeyError(StorageError, ValueError):
    """Raised when a malformed id reaches a driver."""

    def __init__(self, kind: str, value: object) -> None:
        self.kind = kind
        self.value = value
        super().__init__(f"invalid {kind} id: {value!r}")
