"""Object storage seam for uploaded CV documents."""

import logging
import threading
from typing import Protocol

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    def put(self, bucket: str, key: str, data: bytes, content_type: str) -> None: ...

    def get(self, bucket: str, key: str) -> bytes:
        """Return the stored bytes. Raises KeyError if the object does not exist."""
        ...


class InMemoryObjectStore:
    """Process-local object store used for local runs and tests."""

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def put(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        with self._lock:
            self._objects[(bucket, key)] = (data, content_type)
        logger.info("Stored object %s/%s (%d bytes, %s)", bucket, key, len(data), content_type)

    def get(self, bucket: str, key: str) -> bytes:
        with self._lock:
            data, _ = self._objects[(bucket, key)]
        return data
