"""
Conversation processing for Turnwise.

This module provides the message sequence a request works on and the
single implementation of the tool loop: send a snapshot, execute any
requested tools, append the results, send again, until the model gives
a final answer.
"""

from __future__ import annotations

import asyncio as _asyncio
import logging as _logging
import typing as _typing

import turnwise.api.base as api_base
import turnwise.api.types as api_types
import turnwise.constants as _constants
import turnwise.core.tool_executor as tool_executor
import turnwise.errors as errors
import turnwise.logging as turnwise_logging
import turnwise.tools.registry as tools_registry

_logger = _logging.getLogger(__name__)


class Conversation:
    """
    Append-only message sequence for one logical request.

    Enforces that every ToolMessage answers a still-unanswered tool call
    emitted by an earlier AssistantMessage, and that no two unanswered
    tool calls share an id.
    """

    def __init__(
        self,
        messages: _typing.Iterable[api_types.Message] = (),
        *,
        model: str = _constants.DEFAULT_MODEL,
        response_format: api_types.ResponseFormat = api_types.ResponseFormat.TEXT,
    ) -> None:
        self.model = model
        self.response_format = response_format
        self._messages: list[api_types.Message] = []
        self._pending_tool_call_ids: set[str] = set()
        self.extend(messages)

    @property
    def messages(self) -> tuple[api_types.Message, ...]:
        """Immutable view of the current messages."""
        return tuple(self._messages)

    def append(self, message: api_types.Message) -> None:
        """Append one message, enforcing tool-call invariants."""
        self.extend((message,))

    def extend(self, messages: _typing.Iterable[api_types.Message]) -> None:
        """
        Append several messages atomically.

        Either every message is appended or, if any of them breaks an
        invariant, none is.

        Raises:
            MessageValidationError: If a message breaks an invariant
        """
        batch = list(messages)
        pending = self._validated_pending(batch)
        self._messages.extend(batch)
        self._pending_tool_call_ids = pending

    def check(self, messages: _typing.Iterable[api_types.Message]) -> None:
        """
        Raise if appending messages would break an invariant; append nothing.

        Raises:
            MessageValidationError: If a message breaks an invariant
        """
        self._validated_pending(list(messages))

    def _validated_pending(self, batch: list[api_types.Message]) -> set[str]:
        """Unanswered tool call ids after batch, raising on the first violation.

        Ids only need to be unique among unanswered calls; servers that
        number calls per response reuse ids such as call_0 every round.
        """
        pending = set(self._pending_tool_call_ids)

        for i, message in enumerate(batch):
            index = len(self._messages) + i
            if isinstance(message, api_types.AssistantMessage):
                for tc in message.tool_calls:
                    if tc.id in pending:
                        raise errors.MessageValidationError(
                            f"Duplicate tool_call id {tc.id!r}",
                            violation_type="duplicate_tool_call_id",
                            context={"index": index, "tool_call_id": tc.id},
                        )
                    pending.add(tc.id)
            elif isinstance(message, api_types.ToolMessage):
                if message.tool_call_id not in pending:
                    raise errors.MessageValidationError(
                        f"Tool message has orphan tool_call_id: {message.tool_call_id!r}",
                        violation_type="orphan_tool_result",
                        context={"index": index, "tool_call_id": message.tool_call_id},
                    )
                pending.discard(message.tool_call_id)

        return pending

    def snapshot(
        self,
        tools: _typing.Iterable[api_types.ToolDefinition] = (),
    ) -> api_types.CompletionOptions:
        """Immutable request snapshot for a transport call."""
        return api_types.CompletionOptions(
            model=self.model,
            messages=tuple(self._messages),
            tools=tuple(tools),
            response_format=self.response_format,
        )

    def copy(self) -> Conversation:
        """Independent copy with the same messages and settings."""
        return Conversation(
            self._messages,
            model=self.model,
            response_format=self.response_format,
        )

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> _typing.Iterator[api_types.Message]:
        return iter(tuple(self._messages))


class ConversationCallbacks:
    """
    Optional hooks into the tool loop.

    All methods default to no-ops; override the ones you need.
    """

    async def on_round_start(self, round_num: int) -> None:
        """Called before each transport call.

        Args:
            round_num: The round number (1-indexed).
        """

    async def on_tool_call(self, tool_call: api_types.ToolCall) -> None:
        """Called before a tool is executed."""

    async def on_tool_result(
        self,
        tool_call: api_types.ToolCall,
        message: api_types.ToolMessage,
    ) -> None:
        """Called after a tool is executed."""

    def is_cancelled(self) -> bool:
        """Check if the caller has requested cancellation.

        Returns:
            True if cancelled, False otherwise.
        """
        return False


class ConversationOrchestrator:
    """
    Drives the request/execute/append loop.

    The orchestrator is the only writer of the conversation while a run is
    in progress. The transport only ever sees immutable snapshots.
    """

    def __init__(
        self,
        transport: api_base.CompletionTransport,
        *,
        max_tool_rounds: int = _constants.DEFAULT_MAX_TOOL_ROUNDS,
        parallel_tool_calls: bool = False,
        callbacks: ConversationCallbacks | None = None,
        logger: turnwise_logging.ConversationLogger | None = None,
        executor: tool_executor.ToolExecutor | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            transport: Completion transport.
            max_tool_rounds: Maximum rounds of tool execution per run.
            parallel_tool_calls: Run the tool calls of one turn concurrently.
                Results are still appended in request order.
            callbacks: Optional loop hooks (progress, cancellation).
            logger: Optional conversation logger.
            executor: Tool executor (one sharing the logger is created if None).
        """
        if max_tool_rounds < 0:
            raise ValueError(f"max_tool_rounds must be >= 0, got {max_tool_rounds}")
        self._transport = transport
        self._max_tool_rounds = max_tool_rounds
        self._parallel_tool_calls = parallel_tool_calls
        self._callbacks = callbacks or ConversationCallbacks()
        self._logger = logger
        self._executor = executor or tool_executor.ToolExecutor(logger=logger)

    @property
    def transport(self) -> api_base.CompletionTransport:
        return self._transport

    @property
    def logger(self) -> turnwise_logging.ConversationLogger | None:
        return self._logger

    async def run(
        self,
        conversation: Conversation,
        registry: tools_registry.ToolRegistry | None = None,
    ) -> api_types.CompletionTurn:
        """
        Run the tool loop until the model returns a final answer.

        Args:
            conversation: Conversation to drive; grows by one assistant message
                plus its tool messages per tool round.
            registry: Tools the model may call (None for no tools).

        Returns:
            The final turn (is_tool_call_turn is False).

        Raises:
            ToolCallLoopExceededError: If the model keeps requesting tools.
            ConversationCancelledError: If callbacks report cancellation.
            ChatCompletionError: Tool and transport failures, unchanged.
        """
        registry = registry if registry is not None else tools_registry.ToolRegistry()
        definitions = registry.definitions()
        tool_rounds = 0

        while True:
            self._check_cancelled()
            round_num = tool_rounds + 1
            await self._callbacks.on_round_start(round_num)

            options = conversation.snapshot(definitions)
            if self._logger:
                self._logger.log_request(options, round_num=round_num)
            _logger.debug(
                "Round %d: sending %d message(s) via %s",
                round_num,
                len(options.messages),
                self._transport.name,
            )

            turn = await self._transport.send(options)
            if self._logger:
                self._logger.log_turn(turn, round_num=round_num)

            if not turn.is_tool_call_turn:
                return turn

            if tool_rounds >= self._max_tool_rounds:
                if self._logger:
                    self._logger.log_error(
                        "tool loop exceeded", context=f"max_tool_rounds={self._max_tool_rounds}"
                    )
                raise errors.ToolCallLoopExceededError(self._max_tool_rounds)

            assistant_message = turn.to_assistant_message()
            conversation.check([assistant_message])
            tool_messages = await self._execute_tool_calls(turn.tool_calls, registry)

            # The assistant message and its tool results are committed together
            self._check_cancelled()
            conversation.extend([assistant_message, *tool_messages])
            tool_rounds += 1

    async def _execute_tool_calls(
        self,
        tool_calls: _typing.Sequence[api_types.ToolCall],
        registry: tools_registry.ToolRegistry,
    ) -> list[api_types.ToolMessage]:
        """Execute the tool calls of one turn, returning results in request order."""
        if self._parallel_tool_calls and len(tool_calls) > 1:
            return await self._execute_concurrently(tool_calls, registry)

        results: list[api_types.ToolMessage] = []
        for tool_call in tool_calls:
            self._check_cancelled()
            results.append(await self._execute_one(tool_call, registry))
        return results

    async def _execute_concurrently(
        self,
        tool_calls: _typing.Sequence[api_types.ToolCall],
        registry: tools_registry.ToolRegistry,
    ) -> list[api_types.ToolMessage]:
        """
        Run one turn's tool calls as tasks.

        The first failure cancels the calls still running and is re-raised
        unchanged (in request order when several fail together).
        """
        tasks = [_asyncio.create_task(self._execute_one(tc, registry)) for tc in tool_calls]
        try:
            await _asyncio.wait(tasks, return_when=_asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                task.cancel()
            await _asyncio.gather(*tasks, return_exceptions=True)

        for task in tasks:
            error = None if task.cancelled() else task.exception()
            if error is not None:
                raise error
        return [task.result() for task in tasks]

    async def _execute_one(
        self,
        tool_call: api_types.ToolCall,
        registry: tools_registry.ToolRegistry,
    ) -> api_types.ToolMessage:
        await self._callbacks.on_tool_call(tool_call)
        message = await self._executor.invoke(tool_call, registry)
        await self._callbacks.on_tool_result(tool_call, message)
        return message

    def _check_cancelled(self) -> None:
        if self._callbacks.is_cancelled():
            raise errors.ConversationCancelledError("Request cancelled by caller")


async def get_plain_text(
    orchestrator: ConversationOrchestrator,
    conversation: Conversation,
    registry: tools_registry.ToolRegistry | None = None,
) -> str:
    """Run the tool loop and return the final answer verbatim."""
    turn = await orchestrator.run(conversation, registry)
    return turn.content
