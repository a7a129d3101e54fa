"""Random salts for delete tokens.

Every new paste gets its own salt from `generate`. Pastes written before
per-paste salts existed fall back to the installation-wide salt from `get`,
which is created on first use and kept in the store's value namespace.
"""
from __future__ import annotations
import base64
import logging
import secrets

from paste_lib.storage.base import StorageBackend

logger = logging.getLogger(__name__)

NAMESPACE = "salt"
KEY = "server"
SALT_BYTES = 32


class ServerSalt:
    def __init__(self, storage: StorageBackend) -> None:
        self._storage = storage
        self._salt: str | None = None

    @staticmethod
    def generate() -> str:
        return base64.b64encode(secrets.token_bytes(SALT_BYTES)).decode("ascii")

    def get(self) -> str:
        if self._salt is None:
            try:
                self._salt = self._storage.load_value(NAMESPACE, KEY)
            except KeyError:
                self._salt = self.generate()
                self._storage.save_value(NAMESPACE, KEY, self._salt)
                logger.info("Generated a new server salt")
        return self._salt
