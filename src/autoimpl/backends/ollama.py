from __future__ import annotations

import logging
from collections.abc import Mapping

import httpx

from autoimpl.backends._http import HttpBackendBase
from autoimpl.config import DEFAULT_OLLAMA_ENDPOINT
from autoimpl.exceptions import BackendError

logger = logging.getLogger(__name__)


class OllamaBackend(HttpBackendBase):
    """Backend for a local or remote Ollama server (``/api/generate``)."""

    name = "ollama"

    def __init__(
        self,
        endpoint: str = DEFAULT_OLLAMA_ENDPOINT,
        *,
        client: httpx.AsyncClient | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(client=client, headers=headers)
        self.endpoint = endpoint

    async def generate(self, prompt: str, *, model: str, timeout: float) -> str:
        logger.info("  -> Sending prompt to Ollama (%s) for model %s...", self.endpoint, model)
        logger.debug("Ollama prompt:\n%s", prompt)
        response = await self._post(
            self.endpoint,
            payload={"model": model, "prompt": prompt, "stream": False},
            timeout=timeout,
        )
        try:
            data = response.json()
        except ValueError as error:
            msg = f"Ollama returned a non-JSON body: {response.text[:200]}"
            raise BackendError(msg) from error

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            msg = "Ollama response has no 'response' text"
            raise BackendError(msg)
        logger.debug("Ollama raw response:\n%s", text)
        return text

    async def list_models(self, *, timeout: float = 10.0) -> list[str]:
        """Return the model names the server reports, or an empty list."""
        tags_url = self.endpoint.replace("/api/generate", "/api/tags")
        try:
            async with self._session(timeout) as client:
                response = await client.get(tags_url, timeout=timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as error:
            logger.warning("Failed to fetch available Ollama models: %s", error)
            return []
        models = data.get("models", []) if isinstance(data, dict) else []
        return [model["name"] for model in models if isinstance(model, dict) and "name" in model]
