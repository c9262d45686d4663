"""Test doubles and sample projects shared across the test suite."""

from __future__ import annotations

import re

_IMPL_NAME_RE = re.compile(r"The implementation class name must be '(\w+)'")


class ScriptedBackend:
    """Backend double answering from a per-identifier script.

    Each script entry is a string to return, an exception to raise, or a
    callable receiving the prompt.
    """

    name = "scripted"

    def __init__(self, script: dict[str, list[object]] | None = None) -> None:
        self.script = {key: list(value) for key, value in (script or {}).items()}
        self.prompts: list[str] = []
        self.calls: dict[str, int] = {}

    async def generate(self, prompt: str, *, model: str, timeout: float) -> str:
        self.prompts.append(prompt)
        match = _IMPL_NAME_RE.search(prompt)
        impl_name = match.group(1) if match else ""
        identifier = impl_name.removesuffix("Impl")
        self.calls[identifier] = self.calls.get(identifier, 0) + 1
        queue = self.script.get(identifier)
        if not queue:
            msg = f"no scripted answer for {identifier}"
            raise AssertionError(msg)
        answer = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(answer, BaseException):
            raise answer
        if callable(answer):
            result = answer(prompt)
            if hasattr(result, "__await__"):
                return await result
            return result
        return str(answer)


USER_SERVICE_PROJECT = {
    "app/__init__.py": "",
    "app/user.py": """
        from dataclasses import dataclass


        @dataclass
        class User:
            name: str
            age: int
    """,
    "app/db.py": """
        from __future__ import annotations

        from abc import ABC, abstractmethod

        from app.user import User


        class DB(ABC):
            @abstractmethod
            def save(self, user: User) -> None: ...

            @abstractmethod
            def find(self, name: str) -> User | None: ...
    """,
    "app/user_service.py": """
        from __future__ import annotations

        from abc import ABC, abstractmethod

        from autoimpl import AutoGen

        from app.db import DB
        from app.user import User


        class UserService(ABC):
            db: AutoGen[DB | None] = None

            @abstractmethod
            def create(self, user: User) -> None: ...

            @abstractmethod
            def find_by_name(self, name: str) -> User | None: ...
    """,
    "app/controller.py": """
        from __future__ import annotations

        from autoimpl import AutoGen

        from app.user_service import UserService


        class UserController:
            user_service: AutoGen[UserService | None] = None
    """,
}

DB_IMPL = """
```python
from app.db import DB
from app.user import User


class DBImpl(DB):
    def __init__(self) -> None:
        self.users: dict[str, User] = {}

    def save(self, user: User) -> None:
        self.users[user.name] = user

    def find(self, name: str) -> User | None:
        return self.users.get(name)
```
"""

USER_SERVICE_IMPL = """
Here is the implementation:

```python
from user_service import UserService
from app.user import User


class UserServiceImpl(UserService):
    db = None

    def create(self, user: User) -> None:
        if not 3 < len(user.name) < 15 or not 0 <= user.age <= 120:
            raise ValueError("invalid user")
        self.db.save(user)

    def find_by_name(self, name: str) -> User | None:
        return self.db.find(name)
```
"""

