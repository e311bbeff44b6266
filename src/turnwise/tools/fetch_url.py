"""Tool that fetches the content behind a URL."""

from __future__ import annotations

import httpx as _httpx
import pydantic as _pydantic

import turnwise.tools.base as base


class FetchUrlInput(_pydantic.BaseModel):
    """Arguments for fetch_url."""

    url: _pydantic.AnyHttpUrl = _pydantic.Field(description="The URL")


class FetchUrlResult(_pydantic.BaseModel):
    """Content fetched from a URL."""

    content: str


class FetchUrlTool(base.Tool[FetchUrlInput, FetchUrlResult]):
    """Gets content by specified url."""

    def __init__(
        self,
        *,
        client: _httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Args:
            client: Shared httpx client; a short-lived one is created per call when None.
            timeout: Timeout for the per-call client.
        """
        self._client = client
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "fetch_url"

    @property
    def description(self) -> str:
        return "Gets content by specified url"

    @property
    def input_type(self) -> type[FetchUrlInput]:
        return FetchUrlInput

    async def handle(self, input: FetchUrlInput) -> FetchUrlResult:
        if self._client is not None:
            response = await self._client.get(str(input.url))
        else:
            async with _httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                response = await client.get(str(input.url))
        response.raise_for_status()
        return FetchUrlResult(content=response.text)
