"""
Transport layer for Turnwise.

Defines the provider-agnostic data model and the CompletionTransport
contract, plus an adapter for OpenAI-compatible endpoints.
"""

from turnwise.api.base import CompletionTransport
from turnwise.api.openai_compat import OpenAICompatibleTransport
from turnwise.api.types import (
    AssistantMessage,
    CompletionOptions,
    CompletionTurn,
    Message,
    ResponseFormat,
    SystemMessage,
    ToolCall,
    ToolDefinition,
    ToolMessage,
    UserMessage,
    message_to_dict,
)

__all__ = [
    # Transports
    "CompletionTransport",
    "OpenAICompatibleTransport",
    # Messages
    "AssistantMessage",
    "Message",
    "SystemMessage",
    "ToolMessage",
    "UserMessage",
    "message_to_dict",
    # Requests and turns
    "CompletionOptions",
    "CompletionTurn",
    "ResponseFormat",
    "ToolCall",
    "ToolDefinition",
]
