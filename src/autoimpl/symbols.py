from __future__ import annotations

import ast
import logging
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field

from autoimpl._internal.annotations import is_primitive, referenced_names
from autoimpl._internal.declarations import Declaration, MemberKind, ResolvedSymbol
from autoimpl.inspection import SourceInspector

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReferencedSymbols:
    """Declarations a class depends on for its type surface.

    ``local`` holds project declarations in discovery order (breadth first);
    ``external`` maps each third-party or stdlib module to the names used
    from it.
    """

    local: tuple[Declaration, ...] = ()
    external: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return any(declaration.name == name for declaration in self.local)


class SymbolResolver:
    """Collect the declarations referenced by a class, transitively."""

    def __init__(self, inspector: SourceInspector) -> None:
        self._inspector = inspector
        self._cache: dict[tuple[Declaration, bool], ReferencedSymbols] = {}

    def resolve(self, declaration: Declaration, *, transitive: bool = True) -> ReferencedSymbols:
        """Return local and external references of ``declaration``.

        Base classes, attribute annotations, method parameter and return
        annotations all count. Builtins and primitives are ignored and the
        declaration itself is never part of the result.
        """
        key = (declaration, transitive)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        local: list[Declaration] = []
        external: dict[str, list[str]] = {}
        seen: set[Declaration] = {declaration}
        queue: deque[Declaration] = deque([declaration])
        while queue:
            current = queue.popleft()
            for symbol in self._direct_symbols(current):
                if symbol.is_external:
                    names = external.setdefault(symbol.defining_module, [])
                    if symbol.name not in names:
                        names.append(symbol.name)
                    continue
                referenced = symbol.declaration
                if referenced is None or referenced in seen:
                    continue
                seen.add(referenced)
                local.append(referenced)
                if transitive:
                    queue.append(referenced)

        result = ReferencedSymbols(
            local=tuple(local),
            external={module: tuple(names) for module, names in sorted(external.items())},
        )
        logger.debug(
            "Resolved %d local and %d external reference module(s) for %s",
            len(result.local),
            len(result.external),
            declaration.qualified_name,
        )
        self._cache[key] = result
        return result

    def _direct_symbols(self, declaration: Declaration) -> Iterator[ResolvedSymbol]:
        for name in self._referenced_names(declaration):
            if is_primitive(name):
                continue
            symbol = self._inspector.resolve_symbol(name, declaration)
            if symbol is not None:
                yield symbol

    def _referenced_names(self, declaration: Declaration) -> list[str]:
        names: list[str] = []

        def add(node: ast.AST | None) -> None:
            for name in referenced_names(node):
                if name not in names:
                    names.append(name)

        for base in declaration.node.bases:
            add(base)
        for member in self._inspector.get_members(declaration):
            if member.kind is MemberKind.METHOD and isinstance(
                member.node,
                ast.FunctionDef | ast.AsyncFunctionDef,
            ):
                arguments = member.node.args
                for argument in (
                    *arguments.posonlyargs,
                    *arguments.args,
                    *arguments.kwonlyargs,
                    arguments.vararg,
                    arguments.kwarg,
                ):
                    if argument is not None:
                        add(argument.annotation)
                add(member.node.returns)
            elif member.kind is MemberKind.ATTRIBUTE:
                add(member.annotation)
        return names
