"""
Type definitions for chat-completion interactions.

These types provide a provider-agnostic interface for conversations,
tool calls and completion turns. All of them are immutable: the
orchestrator appends new messages, it never edits existing ones.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import json as _json
import typing as _typing


class ResponseFormat(_enum.Enum):
    """Output format requested from the model."""

    TEXT = "text"
    JSON = "json"


@_dataclasses.dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model.

    Produced only by transports; callers never construct these for real
    requests. ``arguments`` is the raw JSON text exactly as the model emitted it.
    """

    id: str
    name: str
    arguments: str

    def to_tool_call_dict(self) -> dict[str, _typing.Any]:
        """Serialize to the OpenAI ``tool_calls`` entry format."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": self.arguments,
            },
        }


@_dataclasses.dataclass(frozen=True)
class SystemMessage:
    """System instruction."""

    content: str
    role: _typing.Literal["system"] = _dataclasses.field(default="system", init=False)


@_dataclasses.dataclass(frozen=True)
class UserMessage:
    """User input, including corrective feedback from the structured validator."""

    content: str
    role: _typing.Literal["user"] = _dataclasses.field(default="user", init=False)


@_dataclasses.dataclass(frozen=True)
class AssistantMessage:
    """A model turn; carries tool calls when the model requested tools."""

    content: str
    tool_calls: tuple[ToolCall, ...] = ()
    role: _typing.Literal["assistant"] = _dataclasses.field(default="assistant", init=False)


@_dataclasses.dataclass(frozen=True)
class ToolMessage:
    """Serialized result of one tool call."""

    content: str
    tool_call_id: str
    role: _typing.Literal["tool"] = _dataclasses.field(default="tool", init=False)


Message = SystemMessage | UserMessage | AssistantMessage | ToolMessage
"""Any message that can appear in a conversation."""


def message_to_dict(message: Message) -> dict[str, _typing.Any]:
    """Convert a message to a plain dict (for logging and display)."""
    data: dict[str, _typing.Any] = {"role": message.role, "content": message.content}
    if isinstance(message, AssistantMessage) and message.tool_calls:
        data["tool_calls"] = [tc.to_tool_call_dict() for tc in message.tool_calls]
    if isinstance(message, ToolMessage):
        data["tool_call_id"] = message.tool_call_id
    return data


@_dataclasses.dataclass(frozen=True)
class ToolDefinition:
    """Tool definition advertised to the model."""

    name: str
    description: str
    parameters_schema: dict[str, _typing.Any]

    def to_openai_format(self) -> dict[str, _typing.Any]:
        """Convert to OpenAI function-tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema,
            },
        }


@_dataclasses.dataclass(frozen=True)
class CompletionOptions:
    """
    Immutable snapshot of a request sent to a transport.

    Each transport call receives its own snapshot, so nothing a transport
    does can reach back into the orchestrator's live message sequence.
    """

    model: str
    messages: tuple[Message, ...]
    tools: tuple[ToolDefinition, ...] = ()
    response_format: ResponseFormat = ResponseFormat.TEXT


@_dataclasses.dataclass(frozen=True)
class CompletionTurn:
    """Exactly one model turn as returned by a transport."""

    content: str
    tool_calls: tuple[ToolCall, ...] = ()
    is_tool_call_turn: bool = False

    def __post_init__(self) -> None:
        if self.is_tool_call_turn and not self.tool_calls:
            raise ValueError("A tool-call turn must carry at least one tool call")

    @classmethod
    def final(cls, content: str) -> CompletionTurn:
        """Create a final (non-tool-call) turn."""
        return cls(content=content)

    @classmethod
    def with_tool_calls(cls, tool_calls: _typing.Sequence[ToolCall], content: str = "") -> CompletionTurn:
        """Create a tool-call turn."""
        return cls(content=content, tool_calls=tuple(tool_calls), is_tool_call_turn=True)

    def to_assistant_message(self) -> AssistantMessage:
        """The assistant message that records this turn in the conversation."""
        return AssistantMessage(content=self.content, tool_calls=self.tool_calls)

    def to_log_dict(self) -> dict[str, _typing.Any]:
        """Convert to a dict suitable for logging."""
        return {
            "content": self.content,
            "is_tool_call_turn": self.is_tool_call_turn,
            "tool_calls": [tc.to_tool_call_dict() for tc in self.tool_calls],
        }

    def __str__(self) -> str:
        if self.is_tool_call_turn:
            return f"<tool-call turn: {_json.dumps([tc.name for tc in self.tool_calls])}>"
        return self.content
