from __future__ import annotations

from functools import lru_cache

from jinja2 import Environment, StrictUndefined, Template


@lru_cache(maxsize=1)
def _environment() -> Environment:
    # Output is Python source and prompt text, never HTML.
    return Environment(
        autoescape=False,  # noqa: S701
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


@lru_cache(maxsize=None)
def compile_template(source: str) -> Template:
    """Return a compiled template, cached by its source text."""
    return _environment().from_string(source)


__all__ = ["compile_template"]
