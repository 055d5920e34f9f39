from typing import Iterable, List, Optional

from finance_tracker.storage.base import KeyValueStorage
from finance_tracker.logging_setup import get_logger

logger = get_logger(__name__)

DEFAULT_CATEGORIES = [
    "salary",
    "freelance",
    "food",
    "transport",
    "entertainment",
    "utilities",
    "health",
    "other",
]

class CategoryService:
    """
    Managed list of category names, persisted in its own storage slot.

    The list is only a suggestion source for entry forms; transactions are
    never validated against it and removing a category leaves existing
    transactions untouched.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: str = "categories",
        defaults: Optional[Iterable[str]] = None,
    ):
        self.storage = storage
        self.storage_key = storage_key
        self.defaults = list(defaults if defaults is not None else DEFAULT_CATEGORIES)
        self._categories: Optional[List[str]] = None

    def _load(self) -> List[str]:
        """Lazy-load the list, seeding the defaults on first use"""
        if self._categories is None:
            stored = self.storage.read_json(self.storage_key, fallback=[])
            if not isinstance(stored, list) or not stored:
                logger.debug("Seeding default categories into slot %r", self.storage_key)
                self._categories = list(self.defaults)
                self._save()
            else:
                self._categories = [str(c) for c in stored]
        return self._categories

    def _save(self) -> None:
        self.storage.write_json(self.storage_key, self._categories)

    def list(self) -> List[str]:
        return list(self._load())

    def __contains__(self, name: str) -> bool:
        return name in self._load()

    def add(self, name: str) -> bool:
        """
        Add a category.

        Returns:
            False if the trimmed name is empty or already present
        """
        name = name.strip()
        categories = self._load()
        if not name or name in categories:
            return False
        categories.append(name)
        self._save()
        return True

    def remove(self, name: str) -> bool:
        """
        Remove a category.

        Returns:
            False if the category doesn't exist
        """
        categories = self._load()
        if name not in categories:
            return False
        self._categories = [c for c in categories if c != name]
        self._save()
        return True
