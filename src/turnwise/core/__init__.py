"""
Core orchestration for Turnwise.

This module contains the tool loop, the tool invocation handler and the
structured output validator. It depends only on the transport contract
in turnwise.api, never on a concrete transport.
"""

from turnwise.core.conversation import (
    Conversation,
    ConversationCallbacks,
    ConversationOrchestrator,
    get_plain_text,
)
from turnwise.core.result import Err, Ok, Result
from turnwise.core.structured import StructuredOutputValidator
from turnwise.core.tool_executor import ToolExecutor

__all__ = [
    # Conversation processing
    "Conversation",
    "ConversationCallbacks",
    "ConversationOrchestrator",
    "get_plain_text",
    # Tool execution
    "ToolExecutor",
    # Structured output
    "StructuredOutputValidator",
    # Results
    "Err",
    "Ok",
    "Result",
]
