"""
File Key/Value Storage with Concurrency Control

One file per key under <data_directory>/storage, written under a file
lock so that several worker processes never interleave writes.

Version: 1.0.0
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout

from orderdesk.core.config import get_settings
from orderdesk.core.exceptions import ExternalServiceError
from orderdesk.services.storage.base import BaseKeyValueStorage

logger = logging.getLogger(__name__)


class FileKeyValueStorage(BaseKeyValueStorage):
    """Lock-guarded file storage."""

    def __init__(self, directory: Optional[Path] = None, lock_timeout: Optional[int] = None):
        settings = get_settings()
        self.directory = Path(directory or Path(settings.data_directory) / "storage")
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.storage_lock_timeout
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"FileKeyValueStorage initialized at {self.directory}")

    @property
    def provider_name(self) -> str:
        return "file"

    def _path(self, key: str) -> Path:
        # Keys may contain characters that are not valid in file names
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self.directory / f"{digest}.json"

    def _lock(self, path: Path) -> FileLock:
        return FileLock(str(path) + ".lock", timeout=self.lock_timeout)

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with self._lock(path):
                return path.read_text(encoding="utf-8")
        except Timeout as e:
            raise ExternalServiceError(f"Lock timeout ({self.lock_timeout}s)", service="storage") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            with self._lock(path):
                tmp = path.with_suffix(".tmp")
                tmp.write_text(value, encoding="utf-8")
                tmp.replace(path)
        except Timeout as e:
            raise ExternalServiceError(f"Lock timeout ({self.lock_timeout}s)", service="storage") from e
        logger.debug(f"Stored key '{key}'")

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            with self._lock(path):
                path.unlink(missing_ok=True)
        except Timeout as e:
            raise ExternalServiceError(f"Lock timeout ({self.lock_timeout}s)", service="storage") from e

    def health_check(self) -> bool:
        return self.directory.is_dir()
