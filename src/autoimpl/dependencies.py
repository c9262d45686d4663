from __future__ import annotations

import ast
import logging
from collections.abc import Iterable

from autoimpl._internal.annotations import dependency_candidates, dotted_name, is_primitive
from autoimpl._internal.declarations import Declaration, Member, MemberKind
from autoimpl.exceptions import SymbolResolutionError
from autoimpl.inspection import SourceInspector
from autoimpl.markers import INJECTION_MARKER_NAME
from autoimpl.models import ExtractedDependencies, PropertyDependency, ServiceContract

logger = logging.getLogger(__name__)

_NON_INJECTABLE_NAMES = frozenset({"Awaitable", "Coroutine", "Callable", "Type", "type"})


class DependenciesExtractor:
    """Extract injected dependencies of classes from their source."""

    def __init__(
        self,
        inspector: SourceInspector,
        *,
        marker_names: Iterable[str] = (INJECTION_MARKER_NAME,),
    ) -> None:
        self._inspector = inspector
        self._marker_names = frozenset(marker_names)
        # Cache for extraction results, keyed by declaration identity
        self._cache: dict[Declaration, ExtractedDependencies] = {}

    def clear_cache(self) -> None:
        self._cache.clear()

    def extract(self, target: Declaration | ServiceContract) -> ExtractedDependencies:
        """Get constructor and marked-property dependencies, inherited ones included.

        Members of the class itself shadow members of its bases with the same
        name. A member that cannot be resolved is logged and skipped; it never
        fails the whole extraction.
        """
        declaration = self._declaration_of(target)
        cached = self._cache.get(declaration)
        if cached is not None:
            return cached

        result = ExtractedDependencies()
        chain = [declaration, *self._inspector.get_ancestors(declaration)]
        self._collect_property_dependencies(chain, result)
        self._collect_constructor_dependencies(chain, result)

        if result:
            logger.debug(
                "Extracted dependencies for %s: constructor=%s properties=%s",
                declaration.name,
                result.constructor_deps,
                [(dependency.name, dependency.type) for dependency in result.property_deps],
            )
        self._cache[declaration] = result
        return result

    def get_property_dependencies(
        self,
        target: Declaration | ServiceContract,
    ) -> list[PropertyDependency]:
        return self.extract(target).property_deps

    def get_constructor_dependencies(self, target: Declaration | ServiceContract) -> list[str]:
        return self.extract(target).constructor_deps

    def _declaration_of(self, target: Declaration | ServiceContract) -> Declaration:
        if isinstance(target, Declaration):
            return target
        if isinstance(target.declaration, Declaration):
            return target.declaration
        matches = [
            declaration
            for declaration in self._inspector.find_declarations(target.identifier)
            if declaration.module == target.module
        ]
        if not matches:
            raise SymbolResolutionError(
                target.identifier,
                target.module,
                "declaration is not part of the inspected project",
            )
        return matches[0]

    def _collect_property_dependencies(
        self,
        chain: list[Declaration],
        result: ExtractedDependencies,
    ) -> None:
        seen_names: set[str] = set()
        for owner in chain:
            for member in self._inspector.get_members(owner):
                if member.kind is not MemberKind.ATTRIBUTE or member.name in seen_names:
                    continue
                seen_names.add(member.name)
                if not member.tags & self._marker_names:
                    continue
                try:
                    identifier = self._resolve_member_type(owner, member)
                except SymbolResolutionError as error:
                    self._report(result, error)
                    continue
                result.property_deps.append(PropertyDependency(name=member.name, type=identifier))

    def _collect_constructor_dependencies(
        self,
        chain: list[Declaration],
        result: ExtractedDependencies,
    ) -> None:
        for owner in chain:
            members = self._inspector.get_members(owner)
            if not any(
                member.kind is MemberKind.METHOD and member.name == "__init__" for member in members
            ):
                continue
            for member in members:
                if member.kind is not MemberKind.CONSTRUCTOR_PARAMETER:
                    continue
                try:
                    identifier = self._resolve_member_type(owner, member)
                except SymbolResolutionError as error:
                    self._report(result, error, level=logging.DEBUG)
                    continue
                result.constructor_deps.append(identifier)
                result.constructor_params.append(member.name)
            # only the nearest __init__ counts
            return

    def _resolve_member_type(self, owner: Declaration, member: Member) -> str:
        reference = f"{owner.name}.{member.name}"
        if member.annotation is None:
            raise SymbolResolutionError(reference, owner.name, "member has no type annotation")

        reasons: list[str] = []
        for candidate in dependency_candidates(member.annotation, self._marker_names):
            name = dotted_name(candidate)
            if name is None:
                reasons.append(f"'{ast.unparse(candidate)}' is not a named type")
                continue
            if is_primitive(name) or name.rsplit(".", 1)[-1] in _NON_INJECTABLE_NAMES:
                reasons.append(f"'{name}' is a builtin type")
                continue
            symbol = self._inspector.resolve_symbol(name, owner)
            if symbol is None:
                reasons.append(f"'{name}' is not declared in the project")
                continue
            if symbol.is_external:
                reasons.append(f"'{name}' comes from external module '{symbol.defining_module}'")
                continue
            return symbol.name

        raise SymbolResolutionError(
            reference,
            owner.name,
            "; ".join(reasons) or "annotation has no injectable variant",
        )

    def _report(
        self,
        result: ExtractedDependencies,
        error: SymbolResolutionError,
        *,
        level: int = logging.WARNING,
    ) -> None:
        result.diagnostics.append(str(error))
        logger.log(level, "Skipping dependency: %s", error)
