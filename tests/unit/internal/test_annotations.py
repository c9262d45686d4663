from __future__ import annotations

import ast

import pytest

from autoimpl._internal.annotations import (
    annotation_tags,
    dependency_candidates,
    dotted_name,
    is_primitive,
    parse_string_annotation,
    referenced_names,
)

MARKERS = frozenset({"AutoGen"})


def _expr(source: str) -> ast.expr:
    return ast.parse(source, mode="eval").body


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("AutoGen[DB]", {"AutoGen"}),
        ("AutoGen[DB | None]", {"AutoGen"}),
        ("Optional[AutoGen[DB]]", {"AutoGen"}),
        ("AutoGen[DB] | None", {"AutoGen"}),
        ("Annotated[DB, AutoGen()]", {"AutoGen"}),
        ("Annotated[DB, markers.AutoGen]", {"AutoGen"}),
        ("'AutoGen[DB]'", {"AutoGen"}),
        ("DB | None", set()),
        ("list[DB]", set()),
    ],
)
def test_annotation_tags(source: str, expected: set[str]) -> None:
    assert annotation_tags(_expr(source), MARKERS) == frozenset(expected)


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("AutoGen[DB | None]", ["DB"]),
        ("AutoGen[Optional[DB]]", ["DB"]),
        ("Union[None, Cache, DB]", ["Cache", "DB"]),
        ("Annotated[ClassVar[db.DB], AutoGen()]", ["db.DB"]),
        ("'DB | None'", ["DB"]),
        ("None", []),
        ("list[DB]", ["list[DB]"]),
    ],
)
def test_dependency_candidates(source: str, expected: list[str]) -> None:
    candidates = dependency_candidates(_expr(source), MARKERS)

    assert [ast.unparse(candidate) for candidate in candidates] == expected


def test_referenced_names_are_ordered_and_unique() -> None:
    names = referenced_names(_expr("dict[str, list[User] | User | models.Order]"))

    assert names == ["dict", "str", "list", "User", "models.Order"]


def test_dotted_name_only_for_name_chains() -> None:
    assert dotted_name(_expr("a.b.C")) == "a.b.C"
    assert dotted_name(_expr("call().C")) is None
    assert dotted_name(None) is None


def test_invalid_string_annotation_is_kept() -> None:
    node = _expr("'DB |'")

    assert parse_string_annotation(node) is node


def test_is_primitive() -> None:
    assert is_primitive("str")
    assert is_primitive("typing.Any")
    assert not is_primitive("DB")
