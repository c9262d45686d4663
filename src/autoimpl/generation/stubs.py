from __future__ import annotations

import ast
from copy import deepcopy

from autoimpl._internal.annotations import dotted_name, last_segment
from autoimpl._internal.ast_project import function_signature
from autoimpl._internal.declarations import Declaration, MemberKind
from autoimpl._internal.rendering import compile_template
from autoimpl.inspection import SourceInspector
from autoimpl.models import ServiceContract
from autoimpl.templates import STUB_MODULE_TEMPLATE

_BUILTIN_DECORATORS = frozenset({"property", "staticmethod", "classmethod"})
_ACCESSOR_SUFFIXES = (".setter", ".getter", ".deleter")


def render_stub(contract: ServiceContract, inspector: SourceInspector, reason: str) -> str:
    """Render an implementation whose abstract methods raise ``NotImplementedError``.

    Used when the backend fails so the container still imports.
    """
    methods: list[dict[str, object]] = []
    seen: set[str] = set()
    concrete: set[str] = set()
    declaration = contract.declaration
    chain = (
        [declaration, *inspector.get_ancestors(declaration)]
        if isinstance(declaration, Declaration)
        else []
    )
    for owner in chain:
        for member in inspector.get_members(owner):
            if member.kind is not MemberKind.METHOD or member.name in seen | concrete:
                continue
            if not member.is_abstract:
                concrete.add(member.name)
                continue
            seen.add(member.name)
            node = member.node
            if not isinstance(node, ast.FunctionDef | ast.AsyncFunctionDef):
                continue
            methods.append(
                {
                    "name": member.name,
                    "signature": function_signature(_without_computed_defaults(node)),
                    "decorators": _kept_decorators(node),
                },
            )

    return compile_template(STUB_MODULE_TEMPLATE).render(
        identifier=contract.identifier,
        impl_name=contract.impl_name,
        module=contract.module,
        reason=_single_line(reason),
        methods=methods,
    )


def _kept_decorators(function: ast.FunctionDef | ast.AsyncFunctionDef) -> list[str]:
    decorators: list[str] = []
    for decorator in function.decorator_list:
        name = dotted_name(decorator)
        if name is None:
            continue
        if last_segment(name) in _BUILTIN_DECORATORS or name.endswith(_ACCESSOR_SUFFIXES):
            decorators.append(name)
    return decorators


def _without_computed_defaults(
    function: ast.FunctionDef | ast.AsyncFunctionDef,
) -> ast.FunctionDef | ast.AsyncFunctionDef:
    # Defaults may name objects the stub does not import.
    clone = deepcopy(function)
    clone.args.defaults = [_literal_or_ellipsis(default) for default in clone.args.defaults]
    clone.args.kw_defaults = [
        _literal_or_ellipsis(default) if default is not None else None
        for default in clone.args.kw_defaults
    ]
    return clone


def _literal_or_ellipsis(node: ast.expr) -> ast.expr:
    try:
        ast.literal_eval(node)
    except (ValueError, TypeError, SyntaxError):
        return ast.Constant(value=...)
    return node


def _single_line(text: str) -> str:
    return " ".join(text.split()).replace("\\", "/").replace('"""', "'''") or "unknown error"
