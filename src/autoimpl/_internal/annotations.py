from __future__ import annotations

import ast

PRIMITIVE_NAMES = frozenset(
    {
        "Any",
        "AsyncIterator",
        "Awaitable",
        "Callable",
        "Coroutine",
        "Iterable",
        "Iterator",
        "Mapping",
        "None",
        "NoReturn",
        "Self",
        "Sequence",
        "bool",
        "bytearray",
        "bytes",
        "complex",
        "dict",
        "float",
        "frozenset",
        "int",
        "list",
        "object",
        "set",
        "str",
        "tuple",
        "type",
    },
)
_UNION_NAMES = frozenset({"Union"})
_OPTIONAL_NAMES = frozenset({"Optional"})
_WRAPPER_NAMES = frozenset(
    {"Annotated", "ClassVar", "Final", "InitVar", "NotRequired", "ReadOnly", "Required"},
)


def dotted_name(node: ast.AST | None) -> str | None:
    """Return ``a.b.C`` for Name/Attribute chains, otherwise None."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        head = dotted_name(node.value)
        return f"{head}.{node.attr}" if head is not None else None
    return None


def last_segment(name: str) -> str:
    return name.rsplit(".", 1)[-1]


def parse_string_annotation(node: ast.expr) -> ast.expr:
    """Parse ``"DB | None"`` style forward references into expressions."""
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            return ast.parse(node.value.strip(), mode="eval").body
        except SyntaxError:
            return node
    return node


def _slice_elements(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.Tuple):
        return list(node.elts)
    return [node]


def _subscript_head(node: ast.Subscript) -> str:
    return last_segment(dotted_name(node.value) or "")


def annotation_tags(node: ast.expr | None, marker_names: frozenset[str]) -> frozenset[str]:
    """Return the marker names attached to an annotation.

    Tags come from ``Marker[T]`` wrappers and from ``Annotated`` metadata,
    either as bare names or calls (``Annotated[T, AutoGen()]``).
    """
    if node is None:
        return frozenset()
    node = parse_string_annotation(node)
    tags: set[str] = set()
    if isinstance(node, ast.Subscript):
        head = _subscript_head(node)
        args = _slice_elements(node.slice)
        if head == "Annotated" and args:
            for metadata in args[1:]:
                target = metadata.func if isinstance(metadata, ast.Call) else metadata
                name = dotted_name(target)
                if name is not None:
                    tags.add(last_segment(name))
            tags |= annotation_tags(args[0], marker_names)
        elif head in marker_names:
            tags.add(head)
            if args:
                tags |= annotation_tags(args[0], marker_names)
        elif head in _OPTIONAL_NAMES | _UNION_NAMES | _WRAPPER_NAMES:
            for arg in args:
                tags |= annotation_tags(arg, marker_names)
    elif isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        tags |= annotation_tags(node.left, marker_names)
        tags |= annotation_tags(node.right, marker_names)
    return frozenset(tags)


def _is_none(node: ast.expr) -> bool:
    if isinstance(node, ast.Constant) and node.value is None:
        return True
    return isinstance(node, ast.Name) and node.id == "None"


def dependency_candidates(node: ast.expr | None, marker_names: frozenset[str]) -> list[ast.expr]:
    """Return the variants an annotation may inject, in declaration order.

    Marker wrappers, ``Annotated`` and qualifiers are unwrapped; unions and
    ``Optional`` are flattened and the ``None`` variant is dropped.
    """
    if node is None:
        return []
    node = parse_string_annotation(node)
    if _is_none(node):
        return []
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return dependency_candidates(node.left, marker_names) + dependency_candidates(
            node.right,
            marker_names,
        )
    if isinstance(node, ast.Subscript):
        head = _subscript_head(node)
        args = _slice_elements(node.slice)
        if not args:
            return [node]
        if head in marker_names or head in _WRAPPER_NAMES or head in _OPTIONAL_NAMES:
            return dependency_candidates(args[0], marker_names)
        if head in _UNION_NAMES:
            candidates: list[ast.expr] = []
            for arg in args:
                candidates.extend(dependency_candidates(arg, marker_names))
            return candidates
    return [node]


def referenced_names(node: ast.AST | None) -> list[str]:
    """Return every dotted name mentioned by an annotation, in order."""
    if node is None:
        return []
    if isinstance(node, ast.expr):
        node = parse_string_annotation(node)
    names: list[str] = []
    name = dotted_name(node)
    if name is not None:
        return [name]
    if isinstance(node, ast.Constant):
        return names
    for child in ast.iter_child_nodes(node):
        for child_name in referenced_names(child):
            if child_name not in names:
                names.append(child_name)
    return names


def is_primitive(name: str) -> bool:
    return last_segment(name) in PRIMITIVE_NAMES


__all__ = [
    "PRIMITIVE_NAMES",
    "annotation_tags",
    "dependency_candidates",
    "dotted_name",
    "is_primitive",
    "last_segment",
    "parse_string_annotation",
    "referenced_names",
]
