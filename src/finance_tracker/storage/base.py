import json
from abc import ABC, abstractmethod
from typing import Any, Optional

from finance_tracker.domain.models import json_default


class KeyValueStorage(ABC):
    """
    Abstract synchronous key-value store holding string values.

    Each key is a persistence slot; the transaction store, the category list
    and the preferences each live in their own slot. Swapping the backend
    (memory, SQLite) does not change any caller.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """
        Read the raw value stored under a key.

        Args:
            key: Slot name

        Returns:
            The stored string, or None if the slot doesn't exist
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Create or overwrite a slot.

        Args:
            key: Slot name
            value: Serialized payload
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """
        Delete a slot entirely. Removing a missing slot is a no-op.

        Args:
            key: Slot name
        """
        pass

    def read_json(self, key: str, fallback: Any = None) -> Any:
        """Decode the JSON stored under ``key``, or return ``fallback`` if absent or corrupt"""
        raw = self.get_item(key)
        if not raw:
            return fallback
        try:
            return json.loads(raw)
        except ValueError:
            return fallback

    def write_json(self, key: str, value: Any) -> None:
        """Serialize ``value`` as JSON into ``key``"""
        self.set_item(key, json.dumps(value, default=json_default))
