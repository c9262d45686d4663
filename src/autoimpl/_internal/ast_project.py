from __future__ import annotations

import ast
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from autoimpl._internal.annotations import annotation_tags, dotted_name, last_segment
from autoimpl._internal.declarations import Declaration, Member, MemberKind, ResolvedSymbol
from autoimpl.markers import INJECTION_MARKER_NAME
from autoimpl.models import DeclarationKind

logger = logging.getLogger(__name__)

_MAX_REEXPORT_DEPTH = 8
_IGNORED_DIRECTORY_NAMES = frozenset({"__pycache__", "node_modules", "site-packages"})
_PROTOCOL_BASES = frozenset({"Protocol"})
_ABSTRACT_BASES = frozenset({"ABC"})
_ABSTRACT_METACLASSES = frozenset({"ABCMeta"})
_ENUM_BASES = frozenset({"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"})
_ABSTRACT_DECORATORS = frozenset({"abstractmethod", "abstractproperty"})


@dataclass(frozen=True, slots=True)
class _ImportBinding:
    module: str
    name: str | None = None


@dataclass(slots=True)
class _ModuleInfo:
    name: str
    path: Path
    source: str
    tree: ast.Module
    is_package: bool
    classes: dict[str, Declaration] = field(default_factory=dict)
    imports: dict[str, _ImportBinding] = field(default_factory=dict)


class AstProject:
    """Source inspector for a Python project, backed by the ``ast`` module.

    Every ``*.py`` file below ``source_root`` becomes a module whose dotted
    name is its path relative to the root. Names are resolved the way the
    interpreter would see them: local classes, then imports (including
    relative imports and package re-exports), then a project-wide lookup of
    a unique class with that name.
    """

    def __init__(
        self,
        source_root: Path,
        *,
        marker_names: Iterable[str] = (INJECTION_MARKER_NAME,),
        load: bool = True,
    ) -> None:
        self._source_root = source_root.resolve()
        self._marker_names = frozenset(marker_names)
        self._modules: dict[str, _ModuleInfo] = {}
        self._modules_by_path: dict[Path, _ModuleInfo] = {}
        self._members_cache: dict[Declaration, list[Member]] = {}
        self._ancestors_cache: dict[Declaration, list[Declaration]] = {}
        if load:
            self.load_tree()

    @property
    def source_root(self) -> Path:
        return self._source_root

    @property
    def marker_names(self) -> frozenset[str]:
        return self._marker_names

    def load_tree(self) -> None:
        """Parse every module below the source root, skipping unreadable files."""
        for path in sorted(self._iter_python_files(self._source_root)):
            try:
                text = path.read_text(encoding="utf-8")
                self.load_source(path, text)
            except (OSError, UnicodeDecodeError, SyntaxError) as error:
                logger.warning("Skipping unreadable module %s: %s", path, error)
        logger.debug(
            "Loaded %d module(s) from %s",
            len(self._modules),
            self._source_root,
        )

    def _iter_python_files(self, root: Path) -> Iterator[Path]:
        for path in root.rglob("*.py"):
            relative_parts = path.relative_to(root).parts[:-1]
            if any(
                part.startswith(".") or part in _IGNORED_DIRECTORY_NAMES for part in relative_parts
            ):
                continue
            yield path

    def module_name_for(self, path: Path) -> str:
        """Return the dotted module name of a path below the source root."""
        relative = path.resolve().relative_to(self._source_root).with_suffix("")
        parts = list(relative.parts)
        if parts and parts[-1] == "__init__":
            parts.pop()
        return ".".join(parts)

    def load_source(self, path: Path, text: str) -> list[Declaration]:
        """Parse ``text`` as the module at ``path``, replacing any earlier version.

        Raises ``SyntaxError`` when the text does not parse.
        """
        resolved = path.resolve()
        tree = ast.parse(text, filename=str(resolved))
        name = self.module_name_for(resolved)
        previous = self._modules_by_path.pop(resolved, None)
        if previous is not None:
            self._modules.pop(previous.name, None)
        self._members_cache.clear()
        self._ancestors_cache.clear()

        info = _ModuleInfo(
            name=name,
            path=resolved,
            source=text,
            tree=tree,
            is_package=resolved.name == "__init__.py",
        )
        info.imports = self._collect_imports(info)
        for node in tree.body:
            if isinstance(node, ast.ClassDef):
                info.classes[node.name] = Declaration(
                    name=node.name,
                    module=name,
                    path=resolved,
                    kind=self._classify(node),
                    node=node,
                    source=_node_source(text, node),
                )
        self._modules[name] = info
        self._modules_by_path[resolved] = info
        return list(info.classes.values())

    def declarations(self) -> list[Declaration]:
        """Return every top-level class, ordered by file path then position."""
        return [
            declaration
            for info in sorted(self._modules.values(), key=lambda item: str(item.path))
            for declaration in info.classes.values()
        ]

    def declarations_in(self, path: Path) -> list[Declaration]:
        info = self._modules_by_path.get(path.resolve())
        return list(info.classes.values()) if info is not None else []

    def find_declarations(self, name: str) -> list[Declaration]:
        return [declaration for declaration in self.declarations() if declaration.name == name]

    def has_module(self, name: str) -> bool:
        if name in self._modules:
            return True
        prefix = f"{name}."
        return any(module.startswith(prefix) for module in self._modules)

    def module_source(self, name: str) -> str | None:
        info = self._modules.get(name)
        return info.source if info is not None else None

    def resolve_relative(self, module: str, level: int, target: str | None) -> str:
        """Return the absolute module named by a relative import inside ``module``."""
        info = self._modules.get(module)
        is_package = info.is_package if info is not None else False
        return _absolute_module(module, is_package, level, target)

    def resolve_symbol(
        self,
        reference: str,
        context: Declaration | str,
    ) -> ResolvedSymbol | None:
        """Resolve a (possibly dotted) type reference as seen from ``context``.

        Returns None for builtins and unknown names.
        """
        module = context.module if isinstance(context, Declaration) else context
        resolved = self._resolve_in_module(reference, module, depth=0)
        if resolved is not None:
            return resolved
        matches = self.find_declarations(last_segment(reference))
        if "." not in reference and len(matches) == 1:
            match = matches[0]
            logger.debug(
                "Resolved '%s' in %s by project-wide name lookup to %s",
                reference,
                module,
                match.qualified_name,
            )
            return ResolvedSymbol(
                name=match.name,
                defining_module=match.module,
                is_external=False,
                declaration=match,
            )
        return None

    def _resolve_in_module(self, reference: str, module: str, depth: int) -> ResolvedSymbol | None:
        if depth > _MAX_REEXPORT_DEPTH:
            return None
        info = self._modules.get(module)
        if info is None:
            return None

        head, _, rest = reference.partition(".")
        if rest:
            binding = info.imports.get(head)
            if binding is None:
                return None
            target_module = binding.module
            if binding.name is not None:
                target_module = f"{target_module}.{binding.name}"
            owner_module, _, name = f"{target_module}.{rest}".rpartition(".")
            return self._lookup(owner_module, name, depth + 1)

        declaration = info.classes.get(reference)
        if declaration is not None:
            return ResolvedSymbol(
                name=declaration.name,
                defining_module=declaration.module,
                is_external=False,
                declaration=declaration,
            )
        binding = info.imports.get(reference)
        if binding is None:
            return None
        if binding.name is None:
            return None
        return self._lookup(binding.module, binding.name, depth + 1)

    def _lookup(self, module: str, name: str, depth: int) -> ResolvedSymbol | None:
        if module in self._modules:
            return self._resolve_in_module(name, module, depth)
        if self.has_module(module):
            # namespace package without __init__.py
            return None
        return ResolvedSymbol(name=name, defining_module=module, is_external=True)

    def get_members(self, declaration: Declaration) -> list[Member]:
        """Return the members declared directly on a class, in source order."""
        cached = self._members_cache.get(declaration)
        if cached is not None:
            return cached
        members: list[Member] = []
        is_interface = declaration.kind is DeclarationKind.INTERFACE
        for statement in declaration.node.body:
            if isinstance(statement, ast.AnnAssign) and isinstance(statement.target, ast.Name):
                members.append(
                    Member(
                        name=statement.target.id,
                        kind=MemberKind.ATTRIBUTE,
                        owner=declaration.name,
                        annotation=statement.annotation,
                        tags=annotation_tags(statement.annotation, self._marker_names),
                        signature=f"{statement.target.id}: {ast.unparse(statement.annotation)}",
                        node=statement,
                    ),
                )
            elif isinstance(statement, ast.Assign):
                members.extend(
                    Member(
                        name=target.id,
                        kind=MemberKind.ATTRIBUTE,
                        owner=declaration.name,
                        signature=target.id,
                        node=statement,
                    )
                    for target in statement.targets
                    if isinstance(target, ast.Name)
                )
            elif isinstance(statement, ast.FunctionDef | ast.AsyncFunctionDef):
                members.append(
                    Member(
                        name=statement.name,
                        kind=MemberKind.METHOD,
                        owner=declaration.name,
                        annotation=statement.returns,
                        is_abstract=_is_abstract_method(statement, is_interface=is_interface),
                        signature=function_signature(statement),
                        node=statement,
                    ),
                )
                if statement.name == "__init__":
                    members.extend(self._constructor_parameters(declaration, statement))
        self._members_cache[declaration] = members
        return members

    def _constructor_parameters(
        self,
        declaration: Declaration,
        function: ast.FunctionDef | ast.AsyncFunctionDef,
    ) -> list[Member]:
        arguments = [*function.args.posonlyargs, *function.args.args, *function.args.kwonlyargs]
        return [
            Member(
                name=argument.arg,
                kind=MemberKind.CONSTRUCTOR_PARAMETER,
                owner=declaration.name,
                annotation=argument.annotation,
                tags=annotation_tags(argument.annotation, self._marker_names),
                signature=f"{argument.arg}: {ast.unparse(argument.annotation)}"
                if argument.annotation is not None
                else argument.arg,
                node=argument,
            )
            for index, argument in enumerate(arguments)
            if not (index == 0 and argument.arg in {"self", "cls"})
        ]

    def get_ancestors(self, declaration: Declaration) -> list[Declaration]:
        """Return project-local base classes, most-derived first, root last."""
        cached = self._ancestors_cache.get(declaration)
        if cached is not None:
            return cached
        ancestors: list[Declaration] = []
        visiting: set[Declaration] = {declaration}
        self._collect_ancestors(declaration, ancestors, visiting)
        self._ancestors_cache[declaration] = ancestors
        return ancestors

    def _collect_ancestors(
        self,
        declaration: Declaration,
        ancestors: list[Declaration],
        visiting: set[Declaration],
    ) -> None:
        for base in declaration.node.bases:
            target = base.value if isinstance(base, ast.Subscript) else base
            name = dotted_name(target)
            if name is None:
                continue
            resolved = self.resolve_symbol(name, declaration)
            if resolved is None or resolved.declaration is None:
                continue
            parent = resolved.declaration
            if parent in visiting or parent in ancestors:
                continue
            visiting.add(parent)
            ancestors.append(parent)
            self._collect_ancestors(parent, ancestors, visiting)

    def _collect_imports(self, info: _ModuleInfo) -> dict[str, _ImportBinding]:
        bindings: dict[str, _ImportBinding] = {}
        for node in ast.walk(info.tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.asname is not None:
                        bindings[alias.asname] = _ImportBinding(module=alias.name)
                    else:
                        head = alias.name.split(".", 1)[0]
                        bindings.setdefault(head, _ImportBinding(module=head))
            elif isinstance(node, ast.ImportFrom):
                module = (
                    _absolute_module(info.name, info.is_package, node.level, node.module)
                    if node.level
                    else node.module or ""
                )
                for alias in node.names:
                    if alias.name == "*":
                        continue
                    bindings[alias.asname or alias.name] = _ImportBinding(
                        module=module,
                        name=alias.name,
                    )
        return bindings

    def _classify(self, node: ast.ClassDef) -> DeclarationKind:
        base_names = {
            last_segment(name)
            for base in node.bases
            if (name := dotted_name(base.value if isinstance(base, ast.Subscript) else base))
        }
        if base_names & _PROTOCOL_BASES:
            return DeclarationKind.INTERFACE
        if base_names & _ENUM_BASES:
            return DeclarationKind.ENUM
        metaclasses = {
            last_segment(name)
            for keyword in node.keywords
            if keyword.arg == "metaclass" and (name := dotted_name(keyword.value))
        }
        if base_names & _ABSTRACT_BASES or metaclasses & _ABSTRACT_METACLASSES:
            return DeclarationKind.ABSTRACT_CLASS
        if any(
            isinstance(statement, ast.FunctionDef | ast.AsyncFunctionDef)
            and _is_abstract_method(statement, is_interface=False)
            for statement in node.body
        ):
            return DeclarationKind.ABSTRACT_CLASS
        return DeclarationKind.CLASS


def function_signature(function: ast.FunctionDef | ast.AsyncFunctionDef) -> str:
    prefix = "async def" if isinstance(function, ast.AsyncFunctionDef) else "def"
    returns = f" -> {ast.unparse(function.returns)}" if function.returns is not None else ""
    return f"{prefix} {function.name}({ast.unparse(function.args)}){returns}"


def _is_abstract_method(
    function: ast.FunctionDef | ast.AsyncFunctionDef,
    *,
    is_interface: bool,
) -> bool:
    for decorator in function.decorator_list:
        name = dotted_name(decorator)
        if name is not None and last_segment(name) in _ABSTRACT_DECORATORS:
            return True
    if is_interface and not function.name.startswith("__"):
        return _has_placeholder_body(function)
    return False


def _has_placeholder_body(function: ast.FunctionDef | ast.AsyncFunctionDef) -> bool:
    body = list(function.body)
    if body and isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant):
        body = body[1:]
    if not body:
        return True
    return len(body) == 1 and (
        isinstance(body[0], ast.Pass)
        or (isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant))
    )


def _absolute_module(module: str, is_package: bool, level: int, target: str | None) -> str:
    parts = module.split(".") if module else []
    if not is_package and parts:
        parts = parts[:-1]
    if level > 1:
        parts = parts[: len(parts) - (level - 1)] if level - 1 <= len(parts) else []
    if target:
        parts.append(target)
    return ".".join(parts)


def _node_source(text: str, node: ast.ClassDef) -> str:
    lines = text.splitlines()
    start = min([node.lineno, *(decorator.lineno for decorator in node.decorator_list)])
    end = node.end_lineno or node.lineno
    return "\n".join(lines[start - 1 : end])


__all__ = ["AstProject", "function_signature"]
