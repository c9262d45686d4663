from __future__ import annotations

from autoimpl import AutoGen

from app.user import User
from app.user_service import UserService


class UserController:
    user_service: AutoGen[UserService | None] = None

    def create(self, user: User) -> None:
        assert self.user_service is not None
        self.user_service.create(user)

    def find(self, name: str) -> User | None:
        assert self.user_service is not None
        return self.user_service.find_by_name(name)
