from __future__ import annotations

import ast
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from autoimpl._internal.annotations import dependency_candidates, dotted_name, is_primitive
from autoimpl._internal.declarations import Declaration, MemberKind, contract_from_declaration
from autoimpl.inspection import SourceInspector
from autoimpl.markers import INJECTION_MARKER_NAME
from autoimpl.models import ServiceContract

logger = logging.getLogger(__name__)


def discover_targets(
    inspector: SourceInspector,
    *,
    exclude: Path | None = None,
    files: Sequence[str] = (),
    marker_names: Iterable[str] = (INJECTION_MARKER_NAME,),
) -> list[ServiceContract]:
    """Find the contracts behind every ``AutoGen``-marked attribute.

    Classes are scanned in sorted file order; the first declaration seen for
    an identifier wins. ``exclude`` skips a directory (the output directory),
    ``files`` keeps only source files whose base name matches, ignoring case.
    """
    markers = frozenset(marker_names)
    wanted = {name.lower() for name in files}
    excluded = exclude.resolve() if exclude is not None else None
    targets: dict[str, ServiceContract] = {}

    for declaration in inspector.declarations():
        if excluded is not None and declaration.path.is_relative_to(excluded):
            continue
        if wanted and declaration.path.name.lower() not in wanted:
            continue
        for member in inspector.get_members(declaration):
            if member.kind is not MemberKind.ATTRIBUTE or not member.tags & markers:
                continue
            logger.info("Found AutoGen on %s.%s", declaration.name, member.name)
            contract = _contract_for(inspector, declaration, member.annotation, markers)
            if contract is None:
                continue
            if contract.identifier not in targets:
                targets[contract.identifier] = contract

    logger.debug("Discovered %d target(s): %s", len(targets), ", ".join(targets))
    return list(targets.values())


def _contract_for(
    inspector: SourceInspector,
    owner: Declaration,
    annotation: ast.expr | None,
    markers: frozenset[str],
) -> ServiceContract | None:
    for candidate in dependency_candidates(annotation, markers):
        name = dotted_name(candidate)
        if name is None or is_primitive(name):
            continue
        symbol = inspector.resolve_symbol(name, owner)
        if symbol is None or symbol.declaration is None:
            logger.error("  -> Error: Could not resolve type '%s' on %s", name, owner.name)
            return None
        declaration = symbol.declaration
        if not declaration.kind.is_contract:
            logger.error(
                "  -> Error: Type %s is not an interface or abstract class.",
                declaration.name,
            )
            return None
        return contract_from_declaration(declaration, inspector.get_members(declaration))
    logger.error(
        "  -> Error: Could not resolve a type for %s on %s",
        ast.unparse(annotation) if annotation is not None else "<missing>",
        owner.name,
    )
    return None
