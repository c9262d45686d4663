from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager

import httpx

from autoimpl.exceptions import BackendError, BackendTimeoutError


class HttpBackendBase:
    """Shared request handling of the HTTP backends.

    A backend either borrows an ``httpx.AsyncClient`` (tests pass one with a
    mock transport) or opens a short-lived client per call.
    """

    name = "http"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._client = client
        self._headers = dict(headers or {})

    @asynccontextmanager
    async def _session(self, timeout: float) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as client:
            yield client

    async def _post(
        self,
        url: str,
        *,
        payload: Mapping[str, object],
        timeout: float,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        request_headers = {"Content-Type": "application/json", **self._headers, **(headers or {})}
        try:
            async with self._session(timeout) as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers=request_headers,
                    timeout=timeout,
                )
                await response.aread()
        except httpx.TimeoutException as error:
            msg = f"{self.name} request timed out after {timeout:g}s"
            raise BackendTimeoutError(msg) from error
        except httpx.HTTPError as error:
            msg = f"{self.name} request failed: {error}"
            raise BackendError(msg) from error

        if response.is_error:
            msg = (
                f"{self.name} request failed with status {response.status_code}: "
                f"{response.text[:500]}"
            )
            raise BackendError(msg)
        return response
