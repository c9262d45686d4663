from __future__ import annotations

from abc import ABC, abstractmethod

from autoimpl import AutoGen

from app.db_service import DB
from app.user import User


class UserService(ABC):
    db: AutoGen[DB | None] = None

    @abstractmethod
    def create(self, user: User) -> None:
        """Validate ``3 < len(name) < 15`` and ``0 <= age <= 120``, then ``db.save(user)``."""

    @abstractmethod
    def find_by_name(self, name: str) -> User | None:
        """Find a user by name in the db."""
