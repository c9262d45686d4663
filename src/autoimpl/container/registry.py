from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from autoimpl.exceptions import (
    ContainerCircularDependencyError,
    ContainerLookupError,
    ContainerRegistrationError,
)

logger = logging.getLogger(__name__)

Factory = Callable[[], Any]

_MISSING: Any = object()


class Registry:
    """Identifier-keyed service registry with lazy, memoized construction.

    Every identifier maps to a zero-argument factory. The first ``get`` runs
    the factory and caches its result for the registry's lifetime; factories
    may call ``get`` for their own dependencies. Lookups are case-sensitive.

    Construction runs under a re-entrant lock, so each factory runs at most
    once even when several threads ask for the same identifier.

    Examples:
        .. code-block:: python

            registry = Registry({"DB": DBImpl})
            registry.register("UserService", lambda: UserServiceImpl(registry.get("DB")))
            assert registry.get("DB") is registry.get("DB")
    """

    def __init__(self, factories: Mapping[str, Factory] | None = None) -> None:
        self._factories: dict[str, Factory] = dict(factories or {})
        self._instances: dict[str, Any] = {}
        self._lock = threading.RLock()
        # identifiers under construction, touched only by the lock holder
        self._resolving: list[str] = []

    def register(self, identifier: str, factory: Factory, *, replace: bool = False) -> None:
        """Add a factory; ``replace=True`` also drops a cached instance."""
        with self._lock:
            if identifier in self._factories and not replace:
                raise ContainerRegistrationError(identifier)
            self._factories[identifier] = factory
            self._instances.pop(identifier, None)

    def get(self, identifier: str) -> Any:
        """Return the instance for ``identifier``, building it on first use.

        Raises ``ContainerLookupError`` for unknown identifiers and
        ``ContainerCircularDependencyError`` when construction re-enters an
        identifier that is still being built.
        """
        instance = self._instances.get(identifier, _MISSING)
        if instance is not _MISSING:
            return instance

        with self._lock:
            instance = self._instances.get(identifier, _MISSING)
            if instance is not _MISSING:
                return instance

            factory = self._factories.get(identifier)
            if factory is None:
                raise ContainerLookupError(identifier, sorted(self._factories))
            if identifier in self._resolving:
                raise ContainerCircularDependencyError(identifier, list(self._resolving))

            logger.debug("Creating instance for %s", identifier)
            self._resolving.append(identifier)
            try:
                instance = factory()
            finally:
                self._resolving.pop()
            self._instances[identifier] = instance
            return instance

    def __getitem__(self, identifier: str) -> Any:
        return self.get(identifier)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._factories))

    def __len__(self) -> int:
        return len(self._factories)

    def identifiers(self) -> list[str]:
        return list(self._factories)

    def is_resolved(self, identifier: str) -> bool:
        return identifier in self._instances

    def reset(self) -> None:
        """Drop every cached instance; factories stay registered."""
        with self._lock:
            self._instances.clear()
