"""
Tool invocation for Turnwise.

Turns one model-issued ToolCall into one ToolMessage: look the tool up,
validate the raw arguments against its schema, deserialize them into the
tool's input type, run the handler and serialize what it returns.

Nothing here is retried. A bad tool call is a model or programming error,
not a transient condition, so every failure propagates to the caller.
"""

from __future__ import annotations

import logging as _logging
import time as _time
import typing as _typing

import pydantic as _pydantic

import turnwise.api.types as api_types
import turnwise.schema as schema
import turnwise.errors as errors
import turnwise.logging as turnwise_logging
import turnwise.tools.base as tools_base
import turnwise.tools.registry as tools_registry

_logger = _logging.getLogger(__name__)


class ToolExecutor:
    """Executes tool calls against a registry."""

    def __init__(
        self,
        *,
        logger: turnwise_logging.ConversationLogger | None = None,
    ) -> None:
        """
        Initialize the tool executor.

        Args:
            logger: Optional conversation logger.
        """
        self._logger = logger

    async def invoke(
        self,
        tool_call: api_types.ToolCall,
        registry: tools_registry.ToolRegistry,
    ) -> api_types.ToolMessage:
        """
        Execute a single tool call.

        Args:
            tool_call: The tool call requested by the model.
            registry: Registry of available tools.

        Returns:
            Tool message carrying the JSON-serialized handler result.

        Raises:
            ToolNotFoundError: If the tool is not registered.
            InvalidToolArgumentsError: If the arguments are malformed JSON,
                violate the input schema, or deserialize to nothing.
        """
        if self._logger:
            self._logger.log_tool_call(tool_call)

        tool = registry.get_or_raise(tool_call.name)
        tool_input = self._parse_arguments(tool, tool_call)

        _logger.debug("Dispatching tool %s (%s)", tool_call.name, tool_call.id)
        start_time = _time.perf_counter()
        output = await tool.handle(tool_input)
        duration_ms = (_time.perf_counter() - start_time) * 1000

        content = tool.serialize_output(output)
        _logger.debug(
            "Tool %s (%s) finished in %.1f ms", tool_call.name, tool_call.id, duration_ms
        )

        if self._logger:
            self._logger.log_tool_result(tool_call, content, duration_ms)

        return api_types.ToolMessage(content=content, tool_call_id=tool_call.id)

    @staticmethod
    def _parse_arguments(
        tool: tools_base.Tool[_typing.Any, _typing.Any],
        tool_call: api_types.ToolCall,
    ) -> _typing.Any:
        """Validate and deserialize the raw arguments of a tool call."""
        outcome = schema.validate_json(tool_call.arguments, tool.input_schema)
        if not outcome.is_valid:
            raise errors.InvalidToolArgumentsError(
                tool_call.name, tool_call.id, outcome.error_text(", ")
            )

        if outcome.value is None:
            raise errors.InvalidToolArgumentsError(
                tool_call.name, tool_call.id, "Deserialization resulted in a null request"
            )

        try:
            tool_input = tool.parse_input(outcome.value)
        except _pydantic.ValidationError as e:
            raise errors.InvalidToolArgumentsError(tool_call.name, tool_call.id, str(e)) from e

        if tool_input is None:
            raise errors.InvalidToolArgumentsError(
                tool_call.name, tool_call.id, "Deserialization resulted in a null request"
            )
        return tool_input
