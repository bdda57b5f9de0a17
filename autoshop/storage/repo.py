from __future__ import annotations

import threading
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel

from autoshop.errors import NotFound

T = TypeVar("T", bound=BaseModel)


class MemoryRepository(Generic[T]):
    """
    Repo mémoire générique avec clé primaire configurable.
    - Conserve l'ordre d'insertion
    - Aucune persistance : l'état est perdu à la fin du process
    """

    def __init__(self, entity_name: str = "entity", key: str = "id") -> None:
        self.entity_name = entity_name
        self.key = key
        self._lock = threading.Lock()
        self._rows: Dict[str, T] = {}

    def _key_of(self, item: T) -> str:
        value = getattr(item, self.key, None)
        if not value:
            raise ValueError(f"Cannot store {self.entity_name} without '{self.key}'")
        return str(value)

    # ---------------- CRUD ---------------- #

    def list_all(self) -> List[T]:
        with self._lock:
            return list(self._rows.values())

    def count(self) -> int:
        with self._lock:
            return len(self._rows)

    def get_by_id(self, obj_id: str) -> Optional[T]:
        with self._lock:
            return self._rows.get(str(obj_id))

    def require(self, obj_id: str) -> T:
        item = self.get_by_id(obj_id)
        if item is None:
            raise NotFound(self.entity_name, obj_id)
        return item

    def add(self, item: T) -> T:
        k = self._key_of(item)
        with self._lock:
            if k in self._rows:
                raise ValueError(f"{self.entity_name} with {self.key}={k} already exists")
            self._rows[k] = item
        return item

    def update(self, item: T) -> T:
        k = self._key_of(item)
        with self._lock:
            if k not in self._rows:
                raise NotFound(self.entity_name, k)
            self._rows[k] = item
        return item

    def upsert(self, item: T) -> T:
        k = self._key_of(item)
        with self._lock:
            self._rows[k] = item
        return item

    def delete(self, obj_id: str) -> bool:
        with self._lock:
            return self._rows.pop(str(obj_id), None) is not None

    # ---------------- Recherches ---------------- #

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        return [r for r in self.list_all() if predicate(r)]

    def find_one(self, predicate: Callable[[T], bool]) -> Optional[T]:
        for r in self.list_all():
            if predicate(r):
                return r
        return None

    def exists(self, predicate: Callable[[T], bool]) -> bool:
        return self.find_one(predicate) is not None
