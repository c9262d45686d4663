from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from autoimpl.inspection import AstProject, MemberKind, SourceInspector
from autoimpl.models import DeclarationKind

MakeProject = Callable[[dict[str, str]], AstProject]


def test_ast_project_satisfies_source_inspector(make_project: MakeProject) -> None:
    project = make_project({"app/__init__.py": ""})

    assert isinstance(project, SourceInspector)


def test_module_names_follow_paths_below_source_root(make_project: MakeProject) -> None:
    project = make_project(
        {
            "app/__init__.py": "class Root: ...\n",
            "app/services/db.py": "class DB: ...\n",
        },
    )

    modules = {declaration.name: declaration.module for declaration in project.declarations()}
    assert modules == {"Root": "app", "DB": "app.services.db"}
    assert project.has_module("app.services")
    assert not project.has_module("other")


def test_declarations_are_classified(make_project: MakeProject) -> None:
    project = make_project(
        {
            "kinds.py": """
                import abc
                from enum import Enum
                from typing import Protocol


                class Port(Protocol):
                    def send(self) -> None: ...


                class Base(abc.ABC):
                    pass


                class Meta(metaclass=abc.ABCMeta):
                    pass


                class Partial:
                    @abc.abstractmethod
                    def run(self) -> None: ...


                class Color(Enum):
                    RED = 1


                class Plain:
                    pass
            """,
        },
    )

    kinds = {declaration.name: declaration.kind for declaration in project.declarations()}
    assert kinds == {
        "Port": DeclarationKind.INTERFACE,
        "Base": DeclarationKind.ABSTRACT_CLASS,
        "Meta": DeclarationKind.ABSTRACT_CLASS,
        "Partial": DeclarationKind.ABSTRACT_CLASS,
        "Color": DeclarationKind.ENUM,
        "Plain": DeclarationKind.CLASS,
    }


def test_unparseable_module_is_skipped(make_project: MakeProject) -> None:
    project = make_project({"broken.py": "class Broken(:\n", "fine.py": "class Fine: ...\n"})

    assert [declaration.name for declaration in project.declarations()] == ["Fine"]


def test_declaration_source_includes_decorators(make_project: MakeProject) -> None:
    project = make_project(
        {
            "models.py": """
                from dataclasses import dataclass


                @dataclass
                class User:
                    name: str
            """,
        },
    )

    (user,) = project.find_declarations("User")
    assert user.source.startswith("@dataclass\nclass User:")


class TestResolveSymbol:
    """Resolution of type references as seen from a module."""

    @pytest.fixture()
    def project(self, make_project: MakeProject) -> AstProject:
        return make_project(
            {
                "app/__init__.py": "from app.db import DB\n",
                "app/db.py": "class DB: ...\n",
                "app/models/__init__.py": "",
                "app/models/user.py": "class User: ...\n",
                "app/service.py": """
                    import app.models.user
                    import httpx as http
                    from pathlib import Path

                    from app import DB
                    from .models.user import User as Account


                    class Service:
                        pass
                """,
                "other/unique.py": "class Unique: ...\n",
            },
        )

    def test_local_class(self, project: AstProject) -> None:
        symbol = project.resolve_symbol("Service", "app.service")

        assert symbol is not None
        assert symbol.defining_module == "app.service"
        assert not symbol.is_external

    def test_package_reexport_resolves_to_defining_module(self, project: AstProject) -> None:
        symbol = project.resolve_symbol("DB", "app.service")

        assert symbol is not None
        assert symbol.defining_module == "app.db"
        assert symbol.declaration is not None
        assert "class DB" in symbol.declaration_text

    def test_relative_import_with_alias(self, project: AstProject) -> None:
        symbol = project.resolve_symbol("Account", "app.service")

        assert symbol is not None
        assert (symbol.name, symbol.defining_module) == ("User", "app.models.user")

    def test_dotted_reference_through_module_import(self, project: AstProject) -> None:
        symbol = project.resolve_symbol("app.models.user.User", "app.service")

        assert symbol is not None
        assert symbol.defining_module == "app.models.user"

    def test_external_import(self, project: AstProject) -> None:
        symbol = project.resolve_symbol("Path", "app.service")

        assert symbol is not None
        assert symbol.is_external
        assert symbol.defining_module == "pathlib"
        assert symbol.declaration_text == ""

    def test_external_module_alias(self, project: AstProject) -> None:
        symbol = project.resolve_symbol("http.AsyncClient", "app.service")

        assert symbol is not None
        assert (symbol.name, symbol.defining_module) == ("AsyncClient", "httpx")
        assert symbol.is_external

    def test_unique_name_found_project_wide(self, project: AstProject) -> None:
        symbol = project.resolve_symbol("Unique", "app.service")

        assert symbol is not None
        assert symbol.defining_module == "other.unique"

    def test_unknown_name(self, project: AstProject) -> None:
        assert project.resolve_symbol("Missing", "app.service") is None
        assert project.resolve_symbol("str", "app.service") is None


def test_members_and_constructor_parameters(make_project: MakeProject) -> None:
    project = make_project(
        {
            "svc.py": """
                from abc import ABC, abstractmethod

                from autoimpl import AutoGen


                class Service(ABC):
                    db: AutoGen[DB | None] = None
                    retries = 3

                    def __init__(self, cache: Cache, *, ttl: int = 5) -> None:
                        self.cache = cache

                    @abstractmethod
                    async def run(self, name: str) -> bool: ...

                    def helper(self) -> None:
                        pass
            """,
        },
    )

    (service,) = project.find_declarations("Service")
    members = {member.name: member for member in project.get_members(service)}

    assert members["db"].kind is MemberKind.ATTRIBUTE
    assert members["db"].tags == frozenset({"AutoGen"})
    assert members["retries"].tags == frozenset()
    assert members["cache"].kind is MemberKind.CONSTRUCTOR_PARAMETER
    assert members["ttl"].kind is MemberKind.CONSTRUCTOR_PARAMETER
    assert "self" not in members
    assert members["run"].is_abstract
    assert members["run"].signature == "async def run(self, name: str) -> bool"
    assert not members["helper"].is_abstract


def test_protocol_placeholder_methods_are_abstract(make_project: MakeProject) -> None:
    project = make_project(
        {
            "ports.py": """
                from typing import Protocol


                class Port(Protocol):
                    def send(self, data: bytes) -> None:
                        \"\"\"Send data.\"\"\"

                    def close(self) -> None:
                        self.closed = True
            """,
        },
    )

    (port,) = project.find_declarations("Port")
    abstract = {member.name: member.is_abstract for member in project.get_members(port)}
    assert abstract == {"send": True, "close": False}


def test_ancestors_most_derived_first(make_project: MakeProject) -> None:
    project = make_project(
        {
            "chain.py": """
                from abc import ABC
                from typing import Generic, TypeVar

                T = TypeVar("T")


                class Root(ABC):
                    pass


                class Middle(Root, Generic[T]):
                    pass


                class Leaf(Middle[int]):
                    pass
            """,
        },
    )

    (leaf,) = project.find_declarations("Leaf")
    assert [ancestor.name for ancestor in project.get_ancestors(leaf)] == ["Middle", "Root"]


def test_load_source_replaces_module(make_project: MakeProject, project_root: Path) -> None:
    project = make_project({"app/db.py": "class DB: ...\n"})
    path = project_root / "src" / "app" / "db.py"

    declarations = project.load_source(path, "class Database: ...\nclass Cache: ...\n")

    assert [declaration.name for declaration in declarations] == ["Database", "Cache"]
    assert project.find_declarations("DB") == []
    assert [declaration.name for declaration in project.declarations_in(path)] == [
        "Database",
        "Cache",
    ]


def test_load_source_rejects_invalid_text(make_project: MakeProject, project_root: Path) -> None:
    project = make_project({"app/db.py": "class DB: ...\n"})

    with pytest.raises(SyntaxError):
        project.load_source(project_root / "src" / "app" / "db.py", "class (")

    assert [declaration.name for declaration in project.find_declarations("DB")] == ["DB"]


def test_custom_marker_names(write_project: Callable[[dict[str, str]], Path]) -> None:
    source_root = write_project(
        {
            "svc.py": """
                class Service:
                    db: Inject[DB]
            """,
        },
    )
    project = AstProject(source_root, marker_names=("Inject",))

    (service,) = project.find_declarations("Service")
    (member,) = project.get_members(service)
    assert member.tags == frozenset({"Inject"})
