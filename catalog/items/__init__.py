"""Published catalog item storage."""

from catalog.items.store import ItemStore, ItemValidationError

__all__ = ["ItemStore", "ItemValidationError"]
