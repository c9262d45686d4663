from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from app.user import User


class DB(ABC):
    """Key-value store for users and arbitrary objects."""

    @abstractmethod
    def save(self, user: User) -> None:
        """Save a user under its name."""

    @abstractmethod
    def find(self, name: str) -> User | None:
        """Find a user by name."""

    @abstractmethod
    def save_object(self, key: str, data: Any) -> None: ...

    @abstractmethod
    def find_object(self, key: str) -> Any: ...

    @abstractmethod
    def get_all_keys(self) -> list[str]: ...

    @abstractmethod
    def delete_object(self, key: str) -> bool: ...
