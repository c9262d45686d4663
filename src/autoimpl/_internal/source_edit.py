from __future__ import annotations

import ast
import re

# line breaks as ``ast`` counts them; ``str.splitlines`` also splits on form feeds
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


class SourceEditor:
    """Line-based edits of a source text, applied all at once by ``render``.

    Line numbers are 1-based like ``ast`` positions. Removals never shift the
    numbering of later edits. Lines inside multi-line string literals are
    rendered untouched.
    """

    def __init__(self, text: str) -> None:
        self._lines = _split_lines(text)
        self._verbatim = _string_literal_lines(text)
        self._removed: set[int] = set()
        self._inserted: dict[int, list[str]] = {}

    def remove_node(self, node: ast.stmt) -> None:
        start = node.lineno
        decorators = getattr(node, "decorator_list", [])
        if decorators:
            start = min(start, *(decorator.lineno for decorator in decorators))
        self.remove_lines(start, node.end_lineno or node.lineno)

    def remove_lines(self, start: int, end: int) -> None:
        self._removed.update(range(start, end + 1))

    def insert_before(self, line: int, new_lines: list[str]) -> None:
        """Insert text before ``line``; ``len(lines) + 1`` appends."""
        self._inserted.setdefault(line, []).extend(new_lines)

    def render(self) -> str:
        output: list[tuple[str, bool]] = []
        for number in range(1, len(self._lines) + 2):
            output.extend((line, False) for line in self._inserted.get(number, []))
            if number <= len(self._lines) and number not in self._removed:
                output.append((self._lines[number - 1], number in self._verbatim))
        return _collapse_blank_lines(output)


def _split_lines(text: str) -> list[str]:
    lines = _LINE_BREAK_RE.split(text)
    if lines and not lines[-1]:
        lines.pop()
    return lines


def _string_literal_lines(text: str) -> frozenset[int]:
    """Return the line numbers covered by string literals spanning several lines."""
    try:
        tree = ast.parse(text)
    except SyntaxError:
        return frozenset()
    covered: set[int] = set()
    for node in ast.walk(tree):
        if not isinstance(node, ast.Constant | ast.JoinedStr):
            continue
        if isinstance(node, ast.Constant) and not isinstance(node.value, str | bytes):
            continue
        end = node.end_lineno or node.lineno
        if end > node.lineno:
            covered.update(range(node.lineno, end + 1))
    return frozenset(covered)


def _collapse_blank_lines(lines: list[tuple[str, bool]]) -> str:
    result: list[str] = []
    blank_run = 0
    for line, verbatim in lines:
        if verbatim:
            blank_run = 0
            result.append(line)
            continue
        if line.strip():
            blank_run = 0
        else:
            blank_run += 1
            if blank_run > 2 or not result:
                continue
        result.append(line.rstrip())
    while result and not result[-1]:
        result.pop()
    return "\n".join(result) + "\n"


__all__ = ["SourceEditor"]
