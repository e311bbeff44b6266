"""
OpenAI-compatible transport implementation.

Works with any endpoint that speaks the OpenAI chat-completions API
(OpenAI itself, OpenRouter, Ollama, vLLM, LM Studio, ...).
"""

from __future__ import annotations

import logging as _logging
import typing as _typing
import uuid as _uuid

import httpx as _httpx

import turnwise.api.base as base
import turnwise.api.types as types
import turnwise.constants as _constants
import turnwise.errors as errors

if _typing.TYPE_CHECKING:
    import turnwise.config as config

_logger = _logging.getLogger(__name__)


class OpenAICompatibleTransport(base.CompletionTransport):
    """
    Transport for OpenAI-compatible chat-completion endpoints.

    Tool call arguments are passed through as raw JSON text; validating
    them is the tool executor's job, not the transport's.
    """

    def __init__(
        self,
        *,
        base_url: str = _constants.DEFAULT_BASE_URL,
        api_key: str | None = None,
        timeout: float = _constants.DEFAULT_REQUEST_TIMEOUT,
        client: _httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            base_url: Endpoint root, e.g. 'https://api.openai.com/v1'.
            api_key: Bearer token; omitted from headers when None.
            timeout: Request timeout in seconds.
            client: Pre-built httpx client (tests inject one with a MockTransport).
                When given, base_url/api_key/timeout are ignored.
        """
        self._base_url = base_url.rstrip("/")

        if client is None:
            headers: dict[str, str] = {
                "Content-Type": "application/json",
                "User-Agent": "Turnwise/1.0",
            }
            if api_key:
                headers["Authorization"] = f"Bearer {api_key}"
            client = _httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=timeout,
            )
        self._client = client

    @classmethod
    def from_settings(cls, settings: config.Settings) -> OpenAICompatibleTransport:
        """Build a transport from Settings."""
        api_key = settings.api_key.get_secret_value() if settings.api_key else None
        return cls(
            base_url=settings.base_url,
            api_key=api_key,
            timeout=settings.request_timeout,
        )

    @property
    def name(self) -> str:
        return "openai"

    @property
    def base_url(self) -> str:
        """Base URL being used for the endpoint."""
        return self._base_url

    async def send(self, options: types.CompletionOptions) -> types.CompletionTurn:
        """Send one chat-completions request."""
        payload = self._build_payload(options)

        _logger.debug(
            "POST /chat/completions model=%s messages=%d tools=%d",
            options.model,
            len(options.messages),
            len(options.tools),
        )

        try:
            response = await self._client.post("/chat/completions", json=payload)
        except _httpx.HTTPError as e:
            raise errors.TransportError(f"Request to {self._base_url} failed: {e}") from e

        if response.is_error:
            body = response.text[: _constants.ERROR_BODY_EXCERPT_CHARS]
            raise errors.TransportError(
                f"Completion endpoint returned HTTP {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise errors.TransportError(
                f"Completion endpoint returned a non-JSON body: {e}",
                status_code=response.status_code,
            ) from e

        return self._parse_response(data)

    def _build_payload(self, options: types.CompletionOptions) -> dict[str, _typing.Any]:
        """Build the request payload."""
        payload: dict[str, _typing.Any] = {
            "model": options.model,
            "messages": [self._format_message(m) for m in options.messages],
        }

        if options.tools:
            payload["tools"] = [t.to_openai_format() for t in options.tools]

        if options.response_format is types.ResponseFormat.JSON:
            payload["response_format"] = {"type": "json_object"}

        return payload

    @staticmethod
    def _format_message(message: types.Message) -> dict[str, _typing.Any]:
        """Format a single message for the OpenAI API."""
        match message:
            case types.SystemMessage(content=content):
                return {"role": "system", "content": content}
            case types.UserMessage(content=content):
                return {"role": "user", "content": content}
            case types.AssistantMessage(content=content, tool_calls=tool_calls):
                assistant_msg: dict[str, _typing.Any] = {"role": "assistant"}
                if tool_calls:
                    assistant_msg["tool_calls"] = [tc.to_tool_call_dict() for tc in tool_calls]
                    # OpenAI accepts null content alongside tool_calls
                    assistant_msg["content"] = content or None
                else:
                    assistant_msg["content"] = content
                return assistant_msg
            case types.ToolMessage(content=content, tool_call_id=tool_call_id):
                return {"role": "tool", "tool_call_id": tool_call_id, "content": content}
            case _:
                raise TypeError(f"Unsupported message type: {type(message).__name__}")

    def _parse_response(self, data: dict[str, _typing.Any]) -> types.CompletionTurn:
        """Parse a non-streaming response."""
        try:
            choice = data["choices"][0]
            message = choice["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise errors.TransportError(f"Malformed completion response: missing {e}") from e

        content = message.get("content") or ""

        tool_calls: list[types.ToolCall] = []
        for tc in message.get("tool_calls") or []:
            if tc.get("type", "function") != "function":
                continue
            func = tc.get("function", {})
            tool_calls.append(
                types.ToolCall(
                    id=tc.get("id") or f"call_{_uuid.uuid4().hex[:24]}",
                    name=func.get("name", ""),
                    arguments=func.get("arguments") or "{}",
                )
            )

        # Some compatible servers report "stop" even when they emitted tool calls
        is_tool_call_turn = bool(tool_calls) and (
            choice.get("finish_reason") in ("tool_calls", "stop", None)
        )

        return types.CompletionTurn(
            content=content,
            tool_calls=tuple(tool_calls),
            is_tool_call_turn=is_tool_call_turn,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
