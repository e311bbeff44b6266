"""
Structured output for Turnwise.

Runs the tool loop, checks the final answer against a JSON Schema and,
when it doesn't validate, tells the model what was wrong and asks again.
The retry budget counts additional attempts after the first one, so a
budget of N means at most N + 1 transport-level attempts.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import pydantic as _pydantic

import turnwise.api.types as api_types
import turnwise.core.conversation as conversation_mod
import turnwise.core.result as result
import turnwise.errors as errors
import turnwise.schema as schema
import turnwise.tools.registry as tools_registry

_logger = _logging.getLogger(__name__)


class StructuredOutputValidator:
    """Validates final answers against a schema, retrying with corrective feedback."""

    def __init__(self, orchestrator: conversation_mod.ConversationOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def get_structured(
        self,
        conversation: conversation_mod.Conversation,
        registry: tools_registry.ToolRegistry | None,
        response_schema: dict[str, _typing.Any],
        max_retries: int,
        target_type: _typing.Any = None,
    ) -> _typing.Any:
        """
        Obtain a schema-valid answer and deserialize it.

        Args:
            conversation: Conversation to drive; corrective user messages are
                appended to it between attempts.
            registry: Tools the model may call.
            response_schema: JSON Schema the final answer must satisfy.
            max_retries: Additional attempts after the first (>= 0).
            target_type: Type to deserialize into with pydantic. When None the
                parsed JSON value is returned as-is.

        Returns:
            The deserialized answer.

        Raises:
            ValueError: If max_retries is negative.
            StructuredOutputValidationError: If no attempt produced a valid answer.
            DeserializationError: If a valid answer can't become target_type.
            ChatCompletionError: Tool and transport failures, unchanged.
        """
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")

        outcome = await self._attempt_until_valid(
            conversation, registry, response_schema, max_retries
        )
        return self._deserialize(outcome.value, target_type)

    async def try_get_structured(
        self,
        conversation: conversation_mod.Conversation,
        registry: tools_registry.ToolRegistry | None,
        response_schema: dict[str, _typing.Any],
        max_retries: int,
        target_type: _typing.Any = None,
    ) -> result.Result[_typing.Any]:
        """
        Like get_structured, but failures come back as Err instead of raising.

        Only ChatCompletionError is captured; anything else (handler bugs,
        cancellation of the task) still propagates.
        """
        try:
            value = await self.get_structured(
                conversation, registry, response_schema, max_retries, target_type
            )
        except errors.ChatCompletionError as e:
            return result.Err(e)
        return result.Ok(value)

    async def _attempt_until_valid(
        self,
        conversation: conversation_mod.Conversation,
        registry: tools_registry.ToolRegistry | None,
        response_schema: dict[str, _typing.Any],
        max_retries: int,
    ) -> schema.ValidationOutcome:
        logger = self._orchestrator.logger
        total_attempts = max_retries + 1

        for attempt in range(1, total_attempts + 1):
            turn = await self._orchestrator.run(conversation, registry)
            outcome = schema.validate_json(turn.content, response_schema)
            if outcome.is_valid:
                if attempt > 1:
                    _logger.debug("Structured answer valid on attempt %d", attempt)
                return outcome

            if logger:
                logger.log_validation_failure(
                    attempt=attempt,
                    content=turn.content,
                    error=outcome.error_text(),
                    malformed=outcome.is_malformed,
                )

            if attempt == total_attempts:
                _logger.warning(
                    "Structured answer still invalid after %d attempt(s): %s",
                    attempt,
                    outcome.error_text("; "),
                )
                raise errors.StructuredOutputValidationError(
                    outcome.error_text(), attempts=attempt
                )

            _logger.info(
                "Structured answer invalid on attempt %d of %d, sending corrective feedback",
                attempt,
                total_attempts,
            )
            conversation.append(api_types.UserMessage(content=outcome.feedback_message()))

        # range() is never empty since total_attempts >= 1
        raise AssertionError("unreachable")

    @staticmethod
    def _deserialize(value: _typing.Any, target_type: _typing.Any) -> _typing.Any:
        if target_type is None:
            return value

        target_name = getattr(target_type, "__name__", repr(target_type))
        try:
            deserialized = _pydantic.TypeAdapter(target_type).validate_python(value)
        except _pydantic.ValidationError as e:
            raise errors.DeserializationError(
                f"Deserialization to {target_name} failed: {e}",
                context={"target": target_name},
            ) from e

        if deserialized is None:
            raise errors.DeserializationProducedNullError(target_name)
        return deserialized
