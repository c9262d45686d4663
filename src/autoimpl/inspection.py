from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from autoimpl._internal.ast_project import AstProject
from autoimpl._internal.declarations import Declaration, Member, MemberKind, ResolvedSymbol


@runtime_checkable
class SourceInspector(Protocol):
    """Read-only view of a project's declarations.

    The extractor, resolver and pipeline only use this surface, so any
    parser can back them. ``AstProject`` is the bundled implementation.
    """

    def declarations(self) -> list[Declaration]:
        """Return every top-level class in the project."""
        ...

    def find_declarations(self, name: str) -> list[Declaration]: ...

    def resolve_symbol(
        self,
        reference: str,
        context: Declaration | str,
    ) -> ResolvedSymbol | None:
        """Resolve a type reference as seen from a declaration or module name."""
        ...

    def get_members(self, declaration: Declaration) -> list[Member]: ...

    def get_ancestors(self, declaration: Declaration) -> list[Declaration]:
        """Return project-local base classes, most-derived first."""
        ...

    def load_source(self, path: Path, text: str) -> list[Declaration]:
        """Add or replace a module from in-memory text."""
        ...

    def declarations_in(self, path: Path) -> list[Declaration]: ...

    def module_name_for(self, path: Path) -> str: ...

    def has_module(self, name: str) -> bool:
        """Return True when ``name`` is a module or package of the project."""
        ...


__all__ = [
    "AstProject",
    "Declaration",
    "Member",
    "MemberKind",
    "ResolvedSymbol",
    "SourceInspector",
]
