from __future__ import annotations

import ast
import builtins
import logging
import re
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import IntEnum

from autoimpl._internal.annotations import dotted_name, last_segment
from autoimpl._internal.declarations import Declaration, MemberKind
from autoimpl._internal.source_edit import SourceEditor
from autoimpl.exceptions import PostProcessError
from autoimpl.inspection import SourceInspector
from autoimpl.markers import INJECTION_MARKER_NAME
from autoimpl.models import DeclarationKind, ServiceContract

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*\r?\n(.*?)```", re.DOTALL)
_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_MAX_IMPORT_LINE = 99
_BUILTIN_NAMES = frozenset(dir(builtins)) | {"__name__", "__file__", "__doc__"}


class ImportSection(IntEnum):
    FUTURE = 0
    STDLIB = 1
    THIRD_PARTY = 2
    FIRST_PARTY = 3
    RELATIVE = 4


@dataclass(slots=True)
class _ImportBlock:
    """Merged imports of one module, grouped for deterministic output."""

    plain: dict[str, set[str | None]] = field(default_factory=dict)
    from_names: dict[tuple[int, str], set[tuple[str, str | None]]] = field(default_factory=dict)

    def add_import(self, module: str, alias: str | None = None) -> None:
        self.plain.setdefault(module, set()).add(alias)

    def add_from(self, level: int, module: str, name: str, alias: str | None = None) -> None:
        self.from_names.setdefault((level, module), set()).add((name, alias))

    def binds(self, name: str) -> bool:
        for module, aliases in self.plain.items():
            for alias in aliases:
                if (alias or module.split(".", 1)[0]) == name:
                    return True
        return any(
            (alias or imported) == name
            for names in self.from_names.values()
            for imported, alias in names
        )


def strip_code_fences(raw: str, impl_name: str | None = None) -> str:
    """Return the code inside markdown fences, preferring the block defining ``impl_name``."""
    text = _THINK_RE.sub("", raw).strip()
    blocks = _FENCE_RE.findall(text)
    if blocks:
        if impl_name is not None:
            for block in blocks:
                if re.search(rf"^\s*class\s+{re.escape(impl_name)}\b", block, re.MULTILINE):
                    return block.strip()
        return max(blocks, key=len).strip()
    if text.startswith("```"):
        # unterminated fence from a truncated response
        lines = text.splitlines()[1:]
        return "\n".join(line for line in lines if line.strip() != "```").strip()
    return text


class PostProcessor:
    """Normalize backend output into an importable implementation module."""

    def __init__(
        self,
        inspector: SourceInspector,
        *,
        marker_names: Iterable[str] = (INJECTION_MARKER_NAME,),
    ) -> None:
        self._inspector = inspector
        self._marker_names = frozenset(marker_names)

    def process(
        self,
        raw: str,
        contract: ServiceContract,
        *,
        module_name: str | None = None,
    ) -> str:
        """Return cleaned source for ``contract``'s implementation.

        Raises ``PostProcessError`` when the text does not parse or does not
        define the implementation class.
        """
        code = strip_code_fences(raw, contract.impl_name)
        if not code:
            raise PostProcessError(contract.identifier, ["backend returned an empty response"])
        try:
            tree = ast.parse(code)
        except SyntaxError as error:
            raise PostProcessError(
                contract.identifier,
                [f"syntax error at line {error.lineno}: {error.msg}"],
            ) from error

        impl_class = _find_class(tree, contract.impl_name)
        if impl_class is None:
            raise PostProcessError(
                contract.identifier,
                [f"class '{contract.impl_name}' is missing"],
            )

        editor = SourceEditor(code)
        for node in tree.body:
            if isinstance(node, ast.ClassDef) and node.name == contract.identifier:
                logger.info("  -> Removing re-declared contract class %s", node.name)
                editor.remove_node(node)
        self._remove_redeclared_attributes(editor, impl_class, contract)

        imports = self._collect_imports(editor, tree, module_name)
        self._ensure_contract_import(imports, contract)
        self._add_missing_imports(imports, tree, contract)

        insert_at = _import_insertion_line(tree)
        editor.insert_before(insert_at, [*render_imports(imports, self._inspector), ""])
        return editor.render()

    def validate(self, code: str, contract: ServiceContract) -> list[str]:
        """Return the problems that keep ``code`` from implementing ``contract``."""
        try:
            tree = ast.parse(code)
        except SyntaxError as error:
            return [f"syntax error at line {error.lineno}: {error.msg}"]

        impl_class = _find_class(tree, contract.impl_name)
        if impl_class is None:
            return [f"class '{contract.impl_name}' is missing"]

        errors: list[str] = []
        base_names = {
            last_segment(name)
            for base in impl_class.bases
            if (name := dotted_name(base.value if isinstance(base, ast.Subscript) else base))
        }
        if contract.identifier not in base_names:
            errors.append(f"class '{contract.impl_name}' must subclass '{contract.identifier}'")

        defined = {
            statement.name
            for statement in impl_class.body
            if isinstance(statement, ast.FunctionDef | ast.AsyncFunctionDef)
        }
        errors.extend(
            f"abstract method '{name}' is not implemented"
            for name in self._abstract_methods(contract)
            if name not in defined
        )
        return errors

    def _contract_chain(self, contract: ServiceContract) -> list[Declaration]:
        declaration = contract.declaration
        if not isinstance(declaration, Declaration):
            return []
        return [declaration, *self._inspector.get_ancestors(declaration)]

    def _abstract_methods(self, contract: ServiceContract) -> list[str]:
        names: list[str] = []
        concrete: set[str] = set()
        for declaration in self._contract_chain(contract):
            for member in self._inspector.get_members(declaration):
                if member.kind is not MemberKind.METHOD or member.name in concrete:
                    continue
                if not member.is_abstract:
                    concrete.add(member.name)
                elif member.name not in names:
                    names.append(member.name)
        return names

    def _remove_redeclared_attributes(
        self,
        editor: SourceEditor,
        impl_class: ast.ClassDef,
        contract: ServiceContract,
    ) -> None:
        # an interface keeps its plain attributes, only marked ones are removed
        marked_only = contract.declaration_kind is not DeclarationKind.ABSTRACT_CLASS
        inherited = {
            member.name
            for declaration in self._contract_chain(contract)
            for member in self._inspector.get_members(declaration)
            if member.kind is MemberKind.ATTRIBUTE
            and (not marked_only or member.tags & self._marker_names)
        }
        removed = 0
        for statement in impl_class.body:
            if _assigned_name(statement) in inherited:
                logger.info(
                    "  -> Removing re-declared attribute %s.%s",
                    impl_class.name,
                    _assigned_name(statement),
                )
                editor.remove_node(statement)
                removed += 1
        if removed and removed == len(impl_class.body):
            first = impl_class.body[0]
            editor.insert_before(first.lineno, [" " * first.col_offset + "pass"])

    def _collect_imports(
        self,
        editor: SourceEditor,
        tree: ast.Module,
        module_name: str | None,
    ) -> _ImportBlock:
        block = _ImportBlock()
        for node in tree.body:
            if isinstance(node, ast.Import):
                for alias in node.names:
                    block.add_import(alias.name, alias.asname)
                editor.remove_node(node)
            elif isinstance(node, ast.ImportFrom):
                module = node.module or ""
                level = node.level
                if level and module_name is not None:
                    module = _resolve_relative(module_name, level, node.module)
                    level = 0
                for alias in node.names:
                    target_module = self._real_module(module, alias.name) if not level else module
                    if target_module != module:
                        logger.info(
                            "  -> Rewriting import of %s from '%s' to '%s'",
                            alias.name,
                            module,
                            target_module,
                        )
                    block.add_from(level, target_module, alias.name, alias.asname)
                editor.remove_node(node)
        return block

    def _real_module(self, module: str, name: str) -> str:
        if name == "*":
            return module
        declarations = self._inspector.find_declarations(name)
        if not declarations or any(declaration.module == module for declaration in declarations):
            return module
        return declarations[0].module

    def _ensure_contract_import(self, imports: _ImportBlock, contract: ServiceContract) -> None:
        if not imports.binds(contract.identifier):
            logger.info(
                "  -> Adding missing import of %s from '%s'",
                contract.identifier,
                contract.module,
            )
            imports.add_from(0, contract.module, contract.identifier)

    def _add_missing_imports(
        self,
        imports: _ImportBlock,
        tree: ast.Module,
        contract: ServiceContract,
    ) -> None:
        for name in _unbound_names(tree):
            if imports.binds(name):
                continue
            symbol = self._inspector.resolve_symbol(name, contract.module)
            if symbol is None:
                continue
            logger.info(
                "  -> Adding missing import of %s from '%s'",
                name,
                symbol.defining_module,
            )
            alias = None if symbol.name == name else name
            imports.add_from(0, symbol.defining_module, symbol.name, alias)


def render_imports(imports: _ImportBlock, inspector: SourceInspector) -> list[str]:
    """Render merged imports as sorted sections separated by blank lines."""
    sections: dict[ImportSection, list[tuple[int, str, str]]] = {}

    for module, aliases in imports.plain.items():
        section = _section_of(0, module, inspector)
        for alias in sorted(aliases, key=lambda item: item or ""):
            line = f"import {module} as {alias}" if alias else f"import {module}"
            sections.setdefault(section, []).append((0, module.lower(), line))

    for (level, module), names in imports.from_names.items():
        section = _section_of(level, module, inspector)
        source = "." * level + module
        rendered = [
            f"{name} as {alias}" if alias else name
            for name, alias in sorted(
                names,
                key=lambda item: (item[0] == "*", item[0], item[1] or ""),
            )
        ]
        sections.setdefault(section, []).append((1, source.lower(), _from_line(source, rendered)))

    lines: list[str] = []
    for section in sorted(sections):
        if lines:
            lines.append("")
        lines.extend(line for _, _, line in sorted(sections[section]))
    return lines


def _from_line(source: str, names: list[str]) -> str:
    line = f"from {source} import {', '.join(names)}"
    if len(line) <= _MAX_IMPORT_LINE:
        return line
    body = "\n".join(f"    {name}," for name in names)
    return f"from {source} import (\n{body}\n)"


def _section_of(level: int, module: str, inspector: SourceInspector) -> ImportSection:
    if level:
        return ImportSection.RELATIVE
    top = module.split(".", 1)[0]
    if top == "__future__":
        return ImportSection.FUTURE
    if inspector.has_module(top):
        return ImportSection.FIRST_PARTY
    if top in sys.stdlib_module_names:
        return ImportSection.STDLIB
    return ImportSection.THIRD_PARTY


def _find_class(tree: ast.Module, name: str) -> ast.ClassDef | None:
    for node in tree.body:
        if isinstance(node, ast.ClassDef) and node.name == name:
            return node
    return None


def _assigned_name(statement: ast.stmt) -> str | None:
    if isinstance(statement, ast.AnnAssign) and isinstance(statement.target, ast.Name):
        return statement.target.id
    if (
        isinstance(statement, ast.Assign)
        and len(statement.targets) == 1
        and isinstance(statement.targets[0], ast.Name)
    ):
        return statement.targets[0].id
    return None


def _import_insertion_line(tree: ast.Module) -> int:
    body = tree.body
    if (
        body
        and isinstance(body[0], ast.Expr)
        and isinstance(body[0].value, ast.Constant)
        and isinstance(body[0].value.value, str)
    ):
        return (body[0].end_lineno or body[0].lineno) + 1
    return 1


def _resolve_relative(module_name: str, level: int, target: str | None) -> str:
    parts = module_name.split(".")[:-level] if level <= len(module_name.split(".")) else []
    if target:
        parts.append(target)
    return ".".join(parts)


def _bound_names(tree: ast.AST) -> set[str]:
    bound: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store | ast.Del):
            bound.add(node.id)
        elif isinstance(node, ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef):
            bound.add(node.name)
        elif isinstance(node, ast.arg):
            bound.add(node.arg)
        elif isinstance(node, ast.alias):
            bound.add((node.asname or node.name).split(".", 1)[0])
        elif isinstance(node, ast.ExceptHandler) and node.name:
            bound.add(node.name)
        elif isinstance(node, ast.Global | ast.Nonlocal):
            bound.update(node.names)
    return bound


def _unbound_names(tree: ast.Module) -> list[str]:
    """Return names read by the module that nothing in it binds, in order."""
    bound = _bound_names(tree) | _BUILTIN_NAMES
    names: list[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load) and node.id not in bound:
            if node.id not in names:
                names.append(node.id)
    return names


__all__ = [
    "ImportSection",
    "PostProcessor",
    "render_imports",
    "strip_code_fences",
]
