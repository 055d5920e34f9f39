from typing import Dict, Optional

from finance_tracker.storage.base import KeyValueStorage


class InMemoryStorage(KeyValueStorage):
    """Dict-backed storage for ephemeral sessions and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._items
