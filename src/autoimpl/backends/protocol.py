from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class SynthesisBackend(Protocol):
    """Protocol for a code-synthesis backend."""

    name: str

    async def generate(self, prompt: str, *, model: str, timeout: float) -> str:
        """Return the raw completion for ``prompt``.

        Raises ``BackendError`` on transport failures, non-success statuses and
        malformed responses, and ``BackendTimeoutError`` when ``timeout``
        seconds elapse.
        """
        ...
