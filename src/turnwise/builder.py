"""
Fluent builder for chat-completion requests.

Usage:
    request = (
        ChatRequestBuilder(transport)
        .use_model("gpt-4o")
        .use_tool(FetchUrlTool())
        .user_prompt("Give me a short description of https://example.com")
        .use_response_schema(Answer)
        .build()
    )
    answer = await request.get_structured(Answer)
"""

from __future__ import annotations

import json as _json
import typing as _typing

import turnwise.api.base as api_base
import turnwise.api.types as api_types
import turnwise.constants as _constants
import turnwise.core.conversation as conversation_mod
import turnwise.core.result as result
import turnwise.core.structured as structured
import turnwise.errors as errors
import turnwise.logging as turnwise_logging
import turnwise.schema as schema
import turnwise.tools.base as tools_base
import turnwise.tools.registry as tools_registry

if _typing.TYPE_CHECKING:
    import turnwise.config as config


class ChatRequest:
    """
    A configured request that can be executed any number of times.

    Every execution works on a fresh copy of the configured conversation,
    so one run's tool results and corrective messages never leak into the next.
    """

    def __init__(
        self,
        transport: api_base.CompletionTransport,
        conversation: conversation_mod.Conversation,
        registry: tools_registry.ToolRegistry,
        *,
        response_schema: dict[str, _typing.Any] | None = None,
        max_retries: int = _constants.DEFAULT_MAX_RETRIES,
        max_tool_rounds: int = _constants.DEFAULT_MAX_TOOL_ROUNDS,
        parallel_tool_calls: bool = False,
        callbacks: conversation_mod.ConversationCallbacks | None = None,
        logger: turnwise_logging.ConversationLogger | None = None,
    ) -> None:
        self._transport = transport
        self._conversation = conversation
        self._registry = registry
        self._response_schema = response_schema
        self._max_retries = max_retries
        self._orchestrator = conversation_mod.ConversationOrchestrator(
            transport,
            max_tool_rounds=max_tool_rounds,
            parallel_tool_calls=parallel_tool_calls,
            callbacks=callbacks,
            logger=logger,
        )

    @property
    def model(self) -> str:
        return self._conversation.model

    @property
    def messages(self) -> tuple[api_types.Message, ...]:
        """The configured messages (unchanged by executions)."""
        return self._conversation.messages

    @property
    def registry(self) -> tools_registry.ToolRegistry:
        return self._registry

    @property
    def response_schema(self) -> dict[str, _typing.Any] | None:
        return self._response_schema

    @property
    def max_retries(self) -> int:
        return self._max_retries

    async def get_plain_text(self) -> str:
        """Run the tool loop and return the final answer verbatim."""
        return await conversation_mod.get_plain_text(
            self._orchestrator, self._conversation.copy(), self._registry
        )

    async def get_structured(
        self,
        target_type: _typing.Any = None,
        *,
        retry_count: int | None = None,
    ) -> _typing.Any:
        """
        Run the tool loop and return a schema-valid answer.

        Args:
            target_type: Type to deserialize into (None returns the parsed JSON).
            retry_count: Override the configured retry budget for this call.

        Raises:
            MissingResponseSchemaError: If no response schema was configured.
        """
        response_schema = self._require_schema()
        validator = structured.StructuredOutputValidator(self._orchestrator)
        return await validator.get_structured(
            self._conversation.copy(),
            self._registry,
            response_schema,
            self._max_retries if retry_count is None else retry_count,
            target_type,
        )

    async def try_get_structured(
        self,
        target_type: _typing.Any = None,
        *,
        retry_count: int | None = None,
    ) -> result.Result[_typing.Any]:
        """Like get_structured, returning Ok(value) or Err(error)."""
        try:
            response_schema = self._require_schema()
        except errors.MissingResponseSchemaError as e:
            return result.Err(e)
        validator = structured.StructuredOutputValidator(self._orchestrator)
        return await validator.try_get_structured(
            self._conversation.copy(),
            self._registry,
            response_schema,
            self._max_retries if retry_count is None else retry_count,
            target_type,
        )

    def _require_schema(self) -> dict[str, _typing.Any]:
        if self._response_schema is None:
            raise errors.MissingResponseSchemaError()
        return self._response_schema


class ChatRequestBuilder:
    """Collects model, messages, tools and an optional response schema."""

    def __init__(
        self,
        transport: api_base.CompletionTransport,
        settings: config.Settings | None = None,
    ) -> None:
        """
        Initialize the builder.

        Args:
            transport: Transport the built request will use.
            settings: Source of defaults for model, retries and tool rounds.
        """
        self._transport = transport
        self._messages: list[api_types.Message] = []
        self._registry = tools_registry.ToolRegistry()
        self._response_schema: dict[str, _typing.Any] | None = None
        self._response_format = api_types.ResponseFormat.TEXT
        self._callbacks: conversation_mod.ConversationCallbacks | None = None
        self._logger: turnwise_logging.ConversationLogger | None = None

        if settings is not None:
            self._model = settings.model
            self._max_retries = settings.max_retries
            self._max_tool_rounds = settings.max_tool_rounds
            self._parallel_tool_calls = settings.parallel_tool_calls
        else:
            self._model = _constants.DEFAULT_MODEL
            self._max_retries = _constants.DEFAULT_MAX_RETRIES
            self._max_tool_rounds = _constants.DEFAULT_MAX_TOOL_ROUNDS
            self._parallel_tool_calls = False

    def use_model(self, model: str) -> ChatRequestBuilder:
        self._model = model
        return self

    def system_prompt(self, prompt: str) -> ChatRequestBuilder:
        self._messages.append(api_types.SystemMessage(content=prompt))
        return self

    def user_prompt(self, prompt: str) -> ChatRequestBuilder:
        self._messages.append(api_types.UserMessage(content=prompt))
        return self

    def assistant_prompt(self, prompt: str) -> ChatRequestBuilder:
        """Add an assistant message (e.g. a few-shot example answer)."""
        self._messages.append(api_types.AssistantMessage(content=prompt))
        return self

    def use_tool(self, tool: tools_base.Tool[_typing.Any, _typing.Any]) -> ChatRequestBuilder:
        """
        Register a tool.

        Raises:
            ValueError: If a tool with the same name was already added
        """
        self._registry.register(tool)
        return self

    def use_response_schema(self, type_or_schema: _typing.Any) -> ChatRequestBuilder:
        """
        Require a structured answer.

        Args:
            type_or_schema: A JSON Schema dict, or a type pydantic can
                describe (model, dataclass, TypedDict, annotation).

        Stores the schema, switches the response format to JSON and adds a
        user message instructing the model to answer in that schema.
        """
        if isinstance(type_or_schema, dict):
            response_schema = type_or_schema
            schema.check_schema(response_schema)
        else:
            response_schema = schema.schema_for(type_or_schema)

        self._response_schema = response_schema
        self._response_format = api_types.ResponseFormat.JSON
        self._messages.append(
            api_types.UserMessage(
                content=(
                    f"{_constants.SCHEMA_INSTRUCTION_PREFIX}\n"
                    f"{_json.dumps(response_schema, indent=2)}"
                )
            )
        )
        return self

    def with_max_retries(self, max_retries: int) -> ChatRequestBuilder:
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self._max_retries = max_retries
        return self

    def with_max_tool_rounds(self, max_tool_rounds: int) -> ChatRequestBuilder:
        if max_tool_rounds < 0:
            raise ValueError(f"max_tool_rounds must be >= 0, got {max_tool_rounds}")
        self._max_tool_rounds = max_tool_rounds
        return self

    def with_parallel_tool_calls(self, enabled: bool = True) -> ChatRequestBuilder:
        self._parallel_tool_calls = enabled
        return self

    def with_callbacks(self, callbacks: conversation_mod.ConversationCallbacks) -> ChatRequestBuilder:
        self._callbacks = callbacks
        return self

    def with_logger(self, logger: turnwise_logging.ConversationLogger) -> ChatRequestBuilder:
        self._logger = logger
        return self

    def build(self) -> ChatRequest:
        """Build the request. The builder can keep being used afterwards."""
        return ChatRequest(
            self._transport,
            conversation_mod.Conversation(
                self._messages,
                model=self._model,
                response_format=self._response_format,
            ),
            self._registry.copy(),
            response_schema=self._response_schema,
            max_retries=self._max_retries,
            max_tool_rounds=self._max_tool_rounds,
            parallel_tool_calls=self._parallel_tool_calls,
            callbacks=self._callbacks,
            logger=self._logger,
        )
