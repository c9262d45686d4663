"""Run after ``autoimpl generate`` from the ``demo_simple`` directory."""

from __future__ import annotations

import logging

from generated.container import container

from app.user import User
from app.user_controller import UserController

logger = logging.getLogger(__name__)


def main() -> int:
    controller = UserController()
    controller.user_service = container.get("UserService")

    failures = 0
    alice = User("Alice", 30)
    controller.create(alice)
    if controller.find("Alice") != alice:
        logger.error("[FAIL] happy path")
        failures += 1

    invalid_users = [
        User("Al", 30),
        User("ThisNameIsWayTooLong", 30),
        User("Bob", -1),
        User("Charlie", 121),
    ]
    for user in invalid_users:
        try:
            controller.create(user)
        except ValueError:
            pass
        else:
            logger.error("[FAIL] %s was accepted", user)
            failures += 1
        if controller.find(user.name) is not None:
            logger.error("[FAIL] %s was stored", user)
            failures += 1

    logger.info("%d failure(s)", failures)
    return 1 if failures else 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    raise SystemExit(main())
