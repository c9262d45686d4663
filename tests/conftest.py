"""Shared pytest fixtures for autoimpl tests."""

from __future__ import annotations

import importlib
import os
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from textwrap import dedent

import pytest

from autoimpl.config import AutoImplSettings
from autoimpl.inspection import AstProject

from support import USER_SERVICE_PROJECT

WriteProject = Callable[[dict[str, str]], Path]

_ENV_PREFIXES = ("AUTOIMPL_", "CLOUDFLARE_", "OLLAMA_")


@pytest.fixture()
def project_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Working directory with an empty ``src`` source root."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(name)
    source_root = tmp_path / "src"
    source_root.mkdir()
    return tmp_path


@pytest.fixture()
def write_project(project_root: Path) -> WriteProject:
    """Write dedented modules below ``src`` and return the source root."""

    def write(files: dict[str, str]) -> Path:
        source_root = project_root / "src"
        for relative, content in files.items():
            path = source_root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(dedent(content).lstrip(), encoding="utf-8")
        return source_root

    return write


@pytest.fixture()
def settings(project_root: Path) -> AutoImplSettings:
    return AutoImplSettings(
        source_root=project_root / "src",
        output_dir=project_root / "src" / "generated",
        lock_file=project_root / "autoimpl.lock",
        timeout=5,
    )


@pytest.fixture()
def make_project(write_project: WriteProject) -> Callable[[dict[str, str]], AstProject]:
    def make(files: dict[str, str]) -> AstProject:
        return AstProject(write_project(files))

    return make


@pytest.fixture()
def import_from(project_root: Path) -> Iterator[Callable[[str], object]]:
    """Import modules from the temporary source root, cleaning up afterwards."""
    source_root = str(project_root / "src")
    sys.path.insert(0, source_root)
    before = set(sys.modules)
    importlib.invalidate_caches()

    def load(module: str) -> object:
        return importlib.import_module(module)

    yield load

    sys.path.remove(source_root)
    for name in set(sys.modules) - before:
        del sys.modules[name]


@pytest.fixture()
def user_service_project(write_project: WriteProject) -> Path:
    return write_project(USER_SERVICE_PROJECT)
