from __future__ import annotations

import ast
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from autoimpl._internal.declarations import Declaration
from autoimpl._internal.rendering import compile_template
from autoimpl.models import DeclarationKind, ServiceContract
from autoimpl.symbols import ReferencedSymbols, SymbolResolver
from autoimpl.templates import FIX_PROMPT_TEMPLATE, PROMPT_TEMPLATE

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _ContractWording:
    task: str
    action: str
    target: str
    method_type: str
    property_rule: str
    declaration_label: str


_INTERFACE_WORDING = _ContractWording(
    task="implement the following Protocol interface",
    action="implement",
    target="interface",
    method_type="interface methods",
    property_rule=(
        "You MUST NOT redeclare attributes marked with AutoGen; they are assigned for you. "
        "Implement every other attribute declared in the interface."
    ),
    declaration_label="interface you must implement",
)
_ABSTRACT_CLASS_WORDING = _ContractWording(
    task="extend the following abstract class and implement its abstract methods",
    action="extend",
    target="abstract class",
    method_type="abstract methods",
    property_rule=(
        "You MUST NOT redeclare any attributes already declared in the base class. "
        "Access them through 'self'."
    ),
    declaration_label="abstract class you must extend",
)


class PromptBuilder:
    """Build synthesis and repair requests for a contract."""

    def __init__(self, resolver: SymbolResolver) -> None:
        self._resolver = resolver
        self._prompt_template = compile_template(PROMPT_TEMPLATE)
        self._fix_template = compile_template(FIX_PROMPT_TEMPLATE)

    def build(self, contract: ServiceContract) -> str:
        """Return the synthesis request for ``contract``.

        The request holds the contract source, the source of every project
        declaration it references (tagged with its module) and the modules of
        external names.
        """
        wording = _wording(contract)
        references = self._references(contract)
        prompt = self._prompt_template.render(
            task=wording.task,
            rules=self._rules(contract, wording),
            dependencies=_dependency_blocks(references),
            external=references.external,
            declaration_label=wording.declaration_label,
            identifier=contract.identifier,
            module=contract.module,
            source=_contract_source(contract),
        )
        logger.debug("Prompt for %s:\n%s", contract.identifier, prompt)
        return prompt

    def build_fix(
        self,
        contract: ServiceContract,
        current_code: str,
        errors: Sequence[str],
    ) -> str:
        """Return a repair request listing ``errors`` for ``current_code``."""
        wording = _wording(contract)
        completion_rule = (
            "COMPLETE the truncated code: every method must be fully implemented."
            if _looks_truncated(current_code)
            else "Ensure the code is complete and syntactically correct."
        )
        references = self._references(contract)
        return self._fix_template.render(
            target=wording.target,
            action=wording.action,
            rules=self._rules(
                contract,
                wording,
                extra=["Fix all validation errors listed below.", completion_rule],
            ),
            errors=list(errors),
            dependencies=_dependency_blocks(references),
            identifier=contract.identifier,
            module=contract.module,
            source=_contract_source(contract),
            current_code=current_code.strip(),
        )

    def _references(self, contract: ServiceContract) -> ReferencedSymbols:
        if not isinstance(contract.declaration, Declaration):
            return ReferencedSymbols()
        return self._resolver.resolve(contract.declaration)

    def _rules(
        self,
        contract: ServiceContract,
        wording: _ContractWording,
        extra: Sequence[str] = (),
    ) -> list[str]:
        identifier = contract.identifier
        return [
            f"The implementation class name must be '{contract.impl_name}'.",
            (
                f"The implementation class MUST {wording.action} the original "
                f"{wording.target} '{identifier}' by subclassing it: "
                f"class {contract.impl_name}({identifier})."
            ),
            (
                f"You MUST implement all {wording.method_type} directly. "
                "Do NOT create private helper methods for the core logic."
            ),
            wording.property_rule,
            f"Expose only the public surface of '{identifier}'; do not add public methods.",
            (
                "Do NOT create unnecessary temporary objects for validation or processing. "
                "Validate data directly (for example a regular expression for e-mail addresses)."
            ),
            *extra,
            "Your response MUST be only raw Python code. No explanations, no markdown.",
        ]


def _wording(contract: ServiceContract) -> _ContractWording:
    if contract.declaration_kind is DeclarationKind.INTERFACE:
        return _INTERFACE_WORDING
    return _ABSTRACT_CLASS_WORDING


def _contract_source(contract: ServiceContract) -> str:
    if isinstance(contract.declaration, Declaration):
        return contract.declaration.source
    return "\n".join(contract.member_signatures)


def _dependency_blocks(references: ReferencedSymbols) -> list[dict[str, str]]:
    return [
        {"module": declaration.module, "source": declaration.source}
        for declaration in references.local
    ]


def _looks_truncated(code: str) -> bool:
    try:
        ast.parse(code)
    except SyntaxError:
        return True
    return False
