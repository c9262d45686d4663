from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from autoimpl.exceptions import LockStateError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_FILE = "autoimpl.lock"


class LockAction(str, Enum):
    LOCK = "lock"
    UNLOCK = "unlock"


@dataclass(frozen=True, slots=True)
class LockOutcome:
    """Result of locking or unlocking one path."""

    path: Path
    action: LockAction
    changed: bool
    reason: str = ""


class LockRegistry:
    """Persisted set of absolute artifact paths exempt from regeneration.

    The lock file holds a pretty-printed JSON array of absolute paths. It is
    re-read on every query so separate processes observe each other's
    changes; every write deduplicates the list while keeping its order.
    """

    def __init__(self, lock_file: Path | str = DEFAULT_LOCK_FILE) -> None:
        self._lock_file = Path(lock_file)

    @property
    def lock_file(self) -> Path:
        return self._lock_file

    def get_lock_data(self) -> list[str]:
        """Return the locked paths, or an empty list when the file is unusable."""
        try:
            return self._read()
        except LockStateError as error:
            logger.warning("Ignoring lock file %s: %s", self._lock_file, error)
            return []

    def save_lock_data(self, paths: Iterable[str | Path]) -> None:
        unique = list(dict.fromkeys(str(path) for path in paths))
        self._lock_file.parent.mkdir(parents=True, exist_ok=True)
        self._lock_file.write_text(json.dumps(unique, indent=2) + "\n", encoding="utf-8")

    def locked_files(self) -> frozenset[Path]:
        return frozenset(Path(path) for path in self.get_lock_data())

    def is_locked(self, path: Path | str) -> bool:
        return str(_absolute(path)) in self.get_lock_data()

    def lock(self, paths: Iterable[Path | str]) -> list[LockOutcome]:
        """Lock files, expanding directories to the ``.py`` files below them."""
        outcomes: list[LockOutcome] = []
        for raw_path in paths:
            path = _absolute(raw_path)
            if path.is_dir():
                outcomes.extend(self._lock_many(sorted(path.rglob("*.py"))))
            elif path.exists():
                outcomes.extend(self._lock_many([path]))
            else:
                logger.error("Cannot lock %s: path does not exist", raw_path)
                outcomes.append(
                    LockOutcome(path, LockAction.LOCK, changed=False, reason="path does not exist"),
                )
        return outcomes

    def unlock(self, paths: Iterable[Path | str]) -> list[LockOutcome]:
        """Unlock files; a directory unlocks every locked path below it."""
        outcomes: list[LockOutcome] = []
        for raw_path in paths:
            path = _absolute(raw_path)
            locked = self.get_lock_data()
            if path.is_dir():
                removed = [item for item in locked if Path(item).is_relative_to(path)]
            else:
                removed = [item for item in locked if item == str(path)]

            if not removed:
                logger.info("  -> %s is not locked", raw_path)
                outcomes.append(
                    LockOutcome(path, LockAction.UNLOCK, changed=False, reason="not locked"),
                )
                continue
            self.save_lock_data(item for item in locked if item not in removed)
            for item in removed:
                logger.info("  -> Unlocked %s", item)
                outcomes.append(LockOutcome(Path(item), LockAction.UNLOCK, changed=True))
        return outcomes

    def _lock_many(self, files: list[Path]) -> list[LockOutcome]:
        locked = self.get_lock_data()
        outcomes: list[LockOutcome] = []
        for file in files:
            if str(file) in locked:
                logger.info("  -> %s is already locked", file)
                outcomes.append(
                    LockOutcome(file, LockAction.LOCK, changed=False, reason="already locked"),
                )
                continue
            locked.append(str(file))
            logger.info("  -> Locked %s", file)
            outcomes.append(LockOutcome(file, LockAction.LOCK, changed=True))
        if any(outcome.changed for outcome in outcomes):
            self.save_lock_data(locked)
        return outcomes

    def _read(self) -> list[str]:
        if not self._lock_file.exists():
            return []
        try:
            data = json.loads(self._lock_file.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as error:
            raise LockStateError(str(error)) from error
        if data is None:
            return []
        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            msg = "expected a JSON array of paths"
            raise LockStateError(msg)
        return data


def _absolute(path: Path | str) -> Path:
    return Path(path).expanduser().resolve()
