from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping

import httpx

from autoimpl.backends._http import HttpBackendBase
from autoimpl.config import DEFAULT_CLOUDFLARE_API_URL
from autoimpl.exceptions import BackendError, ConfigurationError

logger = logging.getLogger(__name__)

KNOWN_MODELS = (
    "@cf/qwen/qwen2.5-coder-32b-instruct",
    "@cf/meta/llama-2-7b-chat-fp16",
    "@cf/meta/llama-2-7b-chat-int8",
    "@cf/mistral/mistral-7b-instruct-v0.1",
    "@hf/thebloke/codellama-7b-instruct-awq",
)


class CloudflareBackend(HttpBackendBase):
    """Backend for Cloudflare Workers AI (``<api_url>/<account>/ai/run/<model>``).

    Accepts both plain JSON answers and server-sent event streams.
    """

    name = "cloudflare"

    def __init__(
        self,
        *,
        account_id: str | None,
        api_token: str | None,
        api_url: str = DEFAULT_CLOUDFLARE_API_URL,
        client: httpx.AsyncClient | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        if not (api_url and account_id and api_token):
            msg = "Cloudflare backend requires api_url, account_id and api_token"
            raise ConfigurationError(msg)
        super().__init__(client=client, headers=headers)
        self.api_url = api_url.rstrip("/")
        self.account_id = account_id
        self._api_token = api_token

    def url_for(self, model: str) -> str:
        return f"{self.api_url}/{self.account_id}/ai/run/{model}"

    async def generate(self, prompt: str, *, model: str, timeout: float) -> str:
        logger.info("  -> Sending prompt to Cloudflare Workers AI for model %s...", model)
        response = await self._post(
            self.url_for(model),
            payload={"prompt": prompt},
            timeout=timeout,
            headers={"Authorization": f"Bearer {self._api_token}"},
        )
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            return _json_result(response)
        if "text/event-stream" in content_type:
            return collect_event_stream(response.text.splitlines())
        return response.text

    async def list_models(self) -> list[str]:
        return list(KNOWN_MODELS)


def _json_result(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError as error:
        msg = "Cloudflare returned malformed JSON"
        raise BackendError(msg) from error
    result = data.get("result") if isinstance(data, dict) else None
    text = result.get("response") if isinstance(result, dict) else None
    if not isinstance(text, str):
        msg = f"Cloudflare response has no 'result.response' text: {str(data)[:200]}"
        raise BackendError(msg)
    return text


def collect_event_stream(lines: Iterable[str]) -> str:
    """Concatenate the ``response`` fields of ``data:`` lines in an SSE body."""
    chunks: list[str] = []
    for line in lines:
        if not line.startswith("data:"):
            continue
        payload = line[len("data:") :].strip()
        if not payload or payload == "[DONE]":
            continue
        try:
            event = json.loads(payload)
        except ValueError:
            # keep-alive and comment lines
            continue
        if isinstance(event, dict) and isinstance(event.get("response"), str):
            chunks.append(event["response"])
    return "".join(chunks)
