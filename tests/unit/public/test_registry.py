from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from autoimpl import (
    ContainerCircularDependencyError,
    ContainerLookupError,
    ContainerRegistrationError,
    Registry,
)


class DB:
    pass


class UserService:
    def __init__(self, db: DB) -> None:
        self.db = db


def test_get_builds_once_and_memoizes() -> None:
    calls: list[str] = []

    def create_db() -> DB:
        calls.append("DB")
        return DB()

    registry = Registry({"DB": create_db})

    first = registry.get("DB")
    second = registry["DB"]

    assert first is second
    assert calls == ["DB"]
    assert registry.is_resolved("DB")


def test_factories_resolve_dependencies_lazily() -> None:
    registry = Registry()
    registry.register("DB", DB)
    registry.register("UserService", lambda: UserService(registry.get("DB")))

    assert not registry.is_resolved("DB")
    service = registry.get("UserService")

    assert isinstance(service, UserService)
    assert service.db is registry.get("DB")


def test_shared_dependency_is_a_single_instance() -> None:
    registry = Registry()
    registry.register("DB", DB)
    registry.register("A", lambda: UserService(registry.get("DB")))
    registry.register("B", lambda: UserService(registry.get("DB")))

    assert registry.get("A").db is registry.get("B").db


def test_unknown_identifier_raises_lookup_error() -> None:
    registry = Registry({"DB": DB})

    with pytest.raises(ContainerLookupError, match="identifier: 'Missing'") as error:
        registry.get("Missing")

    assert error.value.available == ["DB"]


def test_lookup_is_case_sensitive() -> None:
    registry = Registry({"DB": DB})

    with pytest.raises(ContainerLookupError):
        registry.get("db")


def test_cycle_raises_circular_dependency_error() -> None:
    registry = Registry()
    registry.register("A", lambda: registry.get("B"))
    registry.register("B", lambda: registry.get("A"))

    with pytest.raises(ContainerCircularDependencyError) as error:
        registry.get("A")

    assert error.value.chain == ["A", "B", "A"]
    assert not registry.is_resolved("A")
    assert not registry.is_resolved("B")


def test_failed_factory_can_be_retried() -> None:
    attempts: list[int] = []

    def flaky() -> DB:
        attempts.append(1)
        if len(attempts) == 1:
            msg = "boom"
            raise RuntimeError(msg)
        return DB()

    registry = Registry({"DB": flaky})

    with pytest.raises(RuntimeError):
        registry.get("DB")

    assert isinstance(registry.get("DB"), DB)


def test_register_duplicate_requires_replace() -> None:
    registry = Registry({"DB": DB})
    original = registry.get("DB")

    with pytest.raises(ContainerRegistrationError):
        registry.register("DB", DB)

    registry.register("DB", DB, replace=True)
    assert registry.get("DB") is not original


def test_mapping_protocol_and_reset() -> None:
    registry = Registry({"DB": DB, "Cache": object})
    instance = registry.get("DB")

    assert "DB" in registry
    assert "Other" not in registry
    assert len(registry) == 2
    assert list(registry) == registry.identifiers() == ["DB", "Cache"]

    registry.reset()

    assert not registry.is_resolved("DB")
    assert registry.get("DB") is not instance


def test_concurrent_first_access_runs_factory_once() -> None:
    calls: list[int] = []
    barrier = threading.Barrier(8)

    def slow_db() -> DB:
        calls.append(1)
        time.sleep(0.05)
        return DB()

    registry = Registry({"DB": slow_db})

    def resolve() -> DB:
        barrier.wait()
        return registry.get("DB")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: resolve(), range(8)))

    assert len(calls) == 1
    assert all(result is results[0] for result in results)
