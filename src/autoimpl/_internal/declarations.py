from __future__ import annotations

import ast
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from autoimpl.models import DeclarationKind, ServiceContract


class MemberKind(str, Enum):
    """Defines the kind of a class member seen by the inspector."""

    ATTRIBUTE = "attribute"
    METHOD = "method"
    CONSTRUCTOR_PARAMETER = "constructor_parameter"


@dataclass(frozen=True, slots=True, eq=False)
class Declaration:
    """A class declaration found in a project module.

    Declarations compare by identity so they can key per-run caches.
    """

    name: str
    module: str
    path: Path
    kind: DeclarationKind
    node: ast.ClassDef = field(repr=False)
    source: str = field(repr=False)

    @property
    def qualified_name(self) -> str:
        return f"{self.module}.{self.name}"


@dataclass(frozen=True, slots=True)
class Member:
    """A class member with its annotation and tag set."""

    name: str
    kind: MemberKind
    owner: str
    annotation: ast.expr | None = field(default=None, compare=False, repr=False)
    tags: frozenset[str] = frozenset()
    is_abstract: bool = False
    signature: str = ""
    node: ast.AST | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class ResolvedSymbol:
    """Outcome of resolving a type reference in a module context."""

    name: str
    defining_module: str
    is_external: bool
    declaration: Declaration | None = field(default=None, compare=False)

    @property
    def declaration_text(self) -> str:
        return self.declaration.source if self.declaration is not None else ""


def contract_from_declaration(declaration: Declaration, members: list[Member]) -> ServiceContract:
    """Build the immutable contract record for a declaration."""
    signatures = tuple(
        member.signature
        for member in members
        if member.kind is not MemberKind.CONSTRUCTOR_PARAMETER and member.signature
    )
    return ServiceContract(
        identifier=declaration.name,
        declaration_kind=declaration.kind,
        source_location=declaration.path,
        member_signatures=signatures,
        module=declaration.module,
        declaration=declaration,
    )


__all__ = [
    "Declaration",
    "Member",
    "MemberKind",
    "ResolvedSymbol",
    "contract_from_declaration",
]
