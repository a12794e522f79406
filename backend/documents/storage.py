"""
Thin blob-store facade over Django's storage API.

Every backend error is re-raised as ``core.domain.exceptions.StorageFailure``
so the service layer deals with a single failure type whatever storage
is configured (local filesystem in development, a cloud backend in
production).
"""

from __future__ import annotations

import logging
from typing import IO

from django.core.files.storage import Storage, default_storage

from core.domain.exceptions import StorageFailure

logger = logging.getLogger(__name__)


class BlobStorage:
    def __init__(self, storage: Storage | None = None) -> None:
        self._storage = storage or default_storage

    def put(self, key: str, content: IO) -> str:
        """
        Store ``content`` under ``key``.

        Returns the key actually used; backends may alter it to avoid
        overwriting an existing object.
        """
        try:
            return self._storage.save(key, content)
        except Exception as exc:
            logger.exception("Blob upload failed for key %s", key)
            raise StorageFailure(f"Could not store '{key}'.", key=key) from exc

    def open(self, key: str) -> IO:
        try:
            return self._storage.open(key, "rb")
        except FileNotFoundError as exc:
            raise StorageFailure(f"Blob '{key}' does not exist.", key=key) from exc
        except Exception as exc:
            logger.exception("Blob read failed for key %s", key)
            raise StorageFailure(f"Could not read '{key}'.", key=key) from exc

    def get(self, key: str) -> bytes:
        handle = self.open(key)
        try:
            return handle.read()
        finally:
            handle.close()

    def delete(self, key: str) -> None:
        try:
            self._storage.delete(key)
        except Exception as exc:
            logger.exception("Blob delete failed for key %s", key)
            raise StorageFailure(f"Could not delete '{key}'.", key=key) from exc
