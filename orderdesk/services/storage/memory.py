"""In-process key/value storage used by tests."""

from typing import Optional

from orderdesk.services.storage.base import BaseKeyValueStorage


class MemoryKeyValueStorage(BaseKeyValueStorage):

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    @property
    def provider_name(self) -> str:
        return "memory"

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)
