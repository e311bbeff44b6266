"""
Error taxonomy for Turnwise.

Every failure raised by the orchestration core derives from
ChatCompletionError and names the stage that failed, so callers can
tell a bad tool call from a transport outage from a model that never
produced schema-valid output.
"""

import typing as _typing


class ChatCompletionError(Exception):
    """Base class for all orchestration failures."""

    stage: str = "unknown"
    """Name of the stage that failed (e.g. 'transport', 'tool_lookup')."""

    def __init__(self, message: str, *, context: dict[str, _typing.Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}


class MessageValidationError(ChatCompletionError):
    """Raised when a message would break conversation invariants."""

    stage = "conversation"

    def __init__(
        self,
        message: str,
        *,
        violation_type: str,
        context: dict[str, _typing.Any] | None = None,
    ) -> None:
        super().__init__(message, context=context)
        self.violation_type = violation_type


class ToolNotFoundError(ChatCompletionError):
    """The model requested a tool that is not in the registry."""

    stage = "tool_lookup"

    def __init__(self, tool_name: str, available: _typing.Iterable[str] = ()) -> None:
        names = ", ".join(sorted(available)) or "(none)"
        super().__init__(
            f"No tool found with the name '{tool_name}'. Available: {names}",
            context={"tool_name": tool_name},
        )
        self.tool_name = tool_name


class InvalidToolArgumentsError(ChatCompletionError):
    """Tool call arguments were malformed, non-conforming, or empty."""

    stage = "tool_arguments"

    def __init__(self, tool_name: str, tool_call_id: str, detail: str) -> None:
        super().__init__(
            f"Arguments for tool call '{tool_name}' ({tool_call_id}) failed validation: {detail}",
            context={"tool_name": tool_name, "tool_call_id": tool_call_id},
        )
        self.tool_name = tool_name
        self.tool_call_id = tool_call_id
        self.detail = detail


class TransportError(ChatCompletionError):
    """The completion endpoint failed or returned an unusable response."""

    stage = "transport"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message, context={"status_code": status_code})
        self.status_code = status_code
        self.body = body


class StructuredOutputValidationError(ChatCompletionError):
    """The model never produced output that validates against the response schema."""

    stage = "structured_output"

    def __init__(self, last_error: str, *, attempts: int) -> None:
        super().__init__(
            f"Chat completion isn't valid after {attempts} attempt(s): {last_error}",
            context={"attempts": attempts},
        )
        self.last_error = last_error
        self.attempts = attempts


class DeserializationError(ChatCompletionError):
    """A schema-valid answer could not be converted to the target type."""

    stage = "deserialization"


class DeserializationProducedNullError(DeserializationError):
    """Deserializing a schema-valid answer produced None."""

    def __init__(self, target: str) -> None:
        super().__init__(
            f"Deserialization to {target} resulted in a null value",
            context={"target": target},
        )


class MissingResponseSchemaError(ChatCompletionError):
    """A structured response was requested but no response schema was configured."""

    stage = "configuration"

    def __init__(self) -> None:
        super().__init__(
            "Schema is not specified. Call use_response_schema() on the builder "
            "before requesting a structured response."
        )


class ToolCallLoopExceededError(ChatCompletionError):
    """The model kept requesting tools beyond the configured number of rounds."""

    stage = "orchestration"

    def __init__(self, max_tool_rounds: int) -> None:
        super().__init__(
            f"Model requested tools after {max_tool_rounds} tool round(s); aborting",
            context={"max_tool_rounds": max_tool_rounds},
        )
        self.max_tool_rounds = max_tool_rounds


class ConversationCancelledError(ChatCompletionError):
    """The caller cancelled the request between suspension points."""

    stage = "orchestration"
