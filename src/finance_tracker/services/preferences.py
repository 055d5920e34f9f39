from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional

from finance_tracker.storage.base import KeyValueStorage

@dataclass(frozen=True)
class Preferences:
    """User display preferences"""
    currency: str = "USD"
    language: str = "en"

class PreferencesService:
    """Reads and writes Preferences in their own storage slot"""

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: str = "config",
        defaults: Optional[Dict[str, Any]] = None,
    ):
        self.storage = storage
        self.storage_key = storage_key
        self.defaults = Preferences(**(defaults or {}))

    def get(self) -> Preferences:
        """Stored values merged over the defaults"""
        stored = self.storage.read_json(self.storage_key, fallback={})
        if not isinstance(stored, dict):
            return self.defaults

        known = {f.name for f in fields(Preferences)}
        return replace(
            self.defaults,
            **{k: str(v) for k, v in stored.items() if k in known}
        )

    def update(self, **changes: Any) -> Preferences:
        """
        Merge changes into the stored preferences.

        Raises:
            ValueError: If a key is not a known preference
        """
        known = {f.name for f in fields(Preferences)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(
                f"Unknown preference(s): {', '.join(sorted(unknown))}. "
                f"Available: {', '.join(sorted(known))}"
            )

        updated = replace(self.get(), **changes)
        self.storage.write_json(self.storage_key, asdict(updated))
        return updated
