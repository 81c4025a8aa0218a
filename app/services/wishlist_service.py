# app/services/wishlist_service.py
from app.core.stores import KeyValueStore, load_json_list, save_json_list

WISHLIST_STORAGE_KEY = "wishlist"


class WishlistService:
    """
    Favourite product ids, persisted as a JSON array of strings.
    """

    def __init__(self, store: KeyValueStore, storage_key: str = WISHLIST_STORAGE_KEY):
        self.store = store
        self.storage_key = storage_key
        self._items: list[str] = []
        for entry in load_json_list(store, storage_key):
            if isinstance(entry, str) and entry and entry not in self._items:
                self._items.append(entry)

    @property
    def items(self) -> list[str]:
        return list(self._items)

    def count(self) -> int:
        return len(self._items)

    def contains(self, product_id: str) -> bool:
        return product_id in self._items

    def add(self, product_id: str) -> None:
        if product_id in self._items:
            return
        self._items.append(product_id)
        self._save()

    def remove(self, product_id: str) -> None:
        if product_id not in self._items:
            return
        self._items.remove(product_id)
        self._save()

    def toggle(self, product_id: str) -> bool:
        """
        Flip membership; returns True if the product is now favourited.
        """
        if product_id in self._items:
            self.remove(product_id)
            return False
        self.add(product_id)
        return True

    def _save(self) -> None:
        save_json_list(self.store, self.storage_key, self._items)
