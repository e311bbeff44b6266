"""Tests for core/conversation.py."""

import asyncio as _asyncio

import pydantic as _pydantic
import pytest as _pytest

import tests.conftest as conftest
import turnwise.api.types as api_types
import turnwise.core.conversation as conversation
import turnwise.errors as errors
import turnwise.tools.base as tools_base
import turnwise.tools.registry as tools_registry


class DelayInput(_pydantic.BaseModel):
    label: str
    delay: float
    fail: bool = False


class DelayTool(tools_base.Tool[DelayInput, str]):
    """Sleeps, then returns its label (or raises); records completion order."""

    def __init__(self) -> None:
        self.completed: list[str] = []

    @property
    def name(self) -> str:
        return "delay"

    @property
    def description(self) -> str:
        return "Sleep then echo"

    @property
    def input_type(self) -> type[DelayInput]:
        return DelayInput

    async def handle(self, input: DelayInput) -> str:
        await _asyncio.sleep(input.delay)
        if input.fail:
            raise RuntimeError(f"{input.label} failed")
        self.completed.append(input.label)
        return input.label


class RecordingCallbacks(conversation.ConversationCallbacks):
    """Records hook invocations; can cancel after N tool results."""

    def __init__(self, cancel_after_results: int | None = None) -> None:
        self.rounds: list[int] = []
        self.tool_calls: list[str] = []
        self.tool_results: list[str] = []
        self._cancel_after = cancel_after_results

    async def on_round_start(self, round_num: int) -> None:
        self.rounds.append(round_num)

    async def on_tool_call(self, tool_call: api_types.ToolCall) -> None:
        self.tool_calls.append(tool_call.id)

    async def on_tool_result(
        self, tool_call: api_types.ToolCall, message: api_types.ToolMessage
    ) -> None:
        self.tool_results.append(message.tool_call_id)

    def is_cancelled(self) -> bool:
        return self._cancel_after is not None and len(self.tool_results) >= self._cancel_after


def _conversation() -> conversation.Conversation:
    return conversation.Conversation([api_types.UserMessage(content="What is 2 + 3?")], model="m")


class TestConversation:
    """Tests for the append-only message sequence."""

    def test_tool_message_must_answer_earlier_tool_call(self) -> None:
        conv = _conversation()
        with _pytest.raises(errors.MessageValidationError) as exc_info:
            conv.append(api_types.ToolMessage(content="5", tool_call_id="call_1"))
        assert exc_info.value.violation_type == "orphan_tool_result"
        assert len(conv) == 1

    def test_tool_message_after_assistant_tool_call_is_accepted(self) -> None:
        conv = _conversation()
        conv.append(
            api_types.AssistantMessage(
                content="", tool_calls=(conftest.tool_call("call_1", "add"),)
            )
        )
        conv.append(api_types.ToolMessage(content="5", tool_call_id="call_1"))
        assert [m.role for m in conv.messages] == ["user", "assistant", "tool"]

    def test_tool_call_cannot_be_answered_twice(self) -> None:
        conv = _conversation()
        conv.extend(
            [
                api_types.AssistantMessage(
                    content="", tool_calls=(conftest.tool_call("call_1", "add"),)
                ),
                api_types.ToolMessage(content="5", tool_call_id="call_1"),
            ]
        )
        with _pytest.raises(errors.MessageValidationError):
            conv.append(api_types.ToolMessage(content="5", tool_call_id="call_1"))

    def test_duplicate_tool_call_id_rejected(self) -> None:
        conv = _conversation()
        assistant = api_types.AssistantMessage(
            content="", tool_calls=(conftest.tool_call("call_1", "add"),)
        )
        conv.append(assistant)
        with _pytest.raises(errors.MessageValidationError) as exc_info:
            conv.append(assistant)
        assert exc_info.value.violation_type == "duplicate_tool_call_id"

    def test_duplicate_id_within_one_assistant_message_rejected(self) -> None:
        conv = _conversation()
        assistant = api_types.AssistantMessage(
            content="",
            tool_calls=(conftest.tool_call("call_0", "add"), conftest.tool_call("call_0", "add")),
        )
        with _pytest.raises(errors.MessageValidationError) as exc_info:
            conv.check([assistant])
        assert exc_info.value.violation_type == "duplicate_tool_call_id"
        assert len(conv) == 1

    def test_answered_tool_call_id_can_be_reused(self) -> None:
        conv = _conversation()
        for result in ("5", "7"):
            conv.extend(
                [
                    api_types.AssistantMessage(
                        content="", tool_calls=(conftest.tool_call("call_0", "add"),)
                    ),
                    api_types.ToolMessage(content=result, tool_call_id="call_0"),
                ]
            )
        assert [m.role for m in conv.messages] == [
            "user", "assistant", "tool", "assistant", "tool",
        ]

    def test_extend_is_all_or_nothing(self) -> None:
        conv = _conversation()
        with _pytest.raises(errors.MessageValidationError):
            conv.extend(
                [
                    api_types.AssistantMessage(
                        content="", tool_calls=(conftest.tool_call("call_1", "add"),)
                    ),
                    api_types.ToolMessage(content="5", tool_call_id="call_2"),
                ]
            )
        assert len(conv) == 1
        # call_1 was never committed, so answering it is still an orphan
        with _pytest.raises(errors.MessageValidationError):
            conv.append(api_types.ToolMessage(content="5", tool_call_id="call_1"))

    def test_snapshot_is_detached_from_later_appends(self) -> None:
        conv = _conversation()
        snapshot = conv.snapshot()
        conv.append(api_types.UserMessage(content="more"))
        assert len(snapshot.messages) == 1
        assert isinstance(snapshot.messages, tuple)
        assert snapshot.model == "m"

    def test_copy_is_independent(self) -> None:
        conv = _conversation()
        clone = conv.copy()
        clone.append(api_types.UserMessage(content="only in clone"))
        assert len(conv) == 1
        assert len(clone) == 2
        assert clone.model == conv.model


class TestOrchestrator:
    """Tests for the tool loop."""

    @_pytest.mark.asyncio
    async def test_no_tool_calls_returns_first_turn(
        self, registry: tools_registry.ToolRegistry
    ) -> None:
        transport = conftest.ScriptedTransport([conftest.final_turn("Paris")])
        orchestrator = conversation.ConversationOrchestrator(transport)
        conv = _conversation()

        text = await conversation.get_plain_text(orchestrator, conv, registry)

        assert text == "Paris"
        assert transport.call_count == 1
        assert len(conv) == 1

    @_pytest.mark.asyncio
    async def test_tool_round_appends_assistant_and_tool_messages(
        self, registry: tools_registry.ToolRegistry, add_tool: conftest.AddTool
    ) -> None:
        transport = conftest.ScriptedTransport(
            [
                conftest.tool_turn(conftest.tool_call("call_1", "add", '{"a": 2, "b": 3}')),
                conftest.final_turn("The answer is 5"),
            ]
        )
        orchestrator = conversation.ConversationOrchestrator(transport)
        conv = _conversation()

        turn = await orchestrator.run(conv, registry)

        assert turn.content == "The answer is 5"
        assert not turn.is_tool_call_turn
        assert [m.role for m in conv.messages] == ["user", "assistant", "tool"]
        tool_message = conv.messages[2]
        assert isinstance(tool_message, api_types.ToolMessage)
        assert tool_message.tool_call_id == "call_1"
        assert tool_message.content == "5"
        assert add_tool.calls == [conftest.AddInput(a=2, b=3)]

    @_pytest.mark.asyncio
    async def test_each_request_gets_its_own_snapshot(
        self, registry: tools_registry.ToolRegistry
    ) -> None:
        transport = conftest.ScriptedTransport(
            [
                conftest.tool_turn(conftest.tool_call("call_1", "add", '{"a": 1, "b": 1}')),
                conftest.final_turn("2"),
            ]
        )
        orchestrator = conversation.ConversationOrchestrator(transport)

        await orchestrator.run(_conversation(), registry)

        first, second = transport.requests
        assert len(first.messages) == 1
        assert len(second.messages) == 3
        assert [t.name for t in first.tools] == ["add"]

    @_pytest.mark.asyncio
    async def test_tool_messages_follow_request_order(
        self, registry: tools_registry.ToolRegistry
    ) -> None:
        calls = [
            conftest.tool_call("c", "add", '{"a": 1, "b": 0}'),
            conftest.tool_call("a", "add", '{"a": 2, "b": 0}'),
            conftest.tool_call("b", "add", '{"a": 3, "b": 0}'),
        ]
        transport = conftest.ScriptedTransport(
            [conftest.tool_turn(*calls), conftest.final_turn("done")]
        )
        orchestrator = conversation.ConversationOrchestrator(transport)
        conv = _conversation()

        await orchestrator.run(conv, registry)

        tool_messages = [m for m in conv.messages if isinstance(m, api_types.ToolMessage)]
        assert [m.tool_call_id for m in tool_messages] == ["c", "a", "b"]
        assert [m.content for m in tool_messages] == ["1", "2", "3"]

    @_pytest.mark.asyncio
    async def test_parallel_tool_calls_keep_request_order(self) -> None:
        delay_tool = DelayTool()
        registry = tools_registry.ToolRegistry([delay_tool])
        calls = [
            conftest.tool_call("slow", "delay", '{"label": "slow", "delay": 0.05}'),
            conftest.tool_call("fast", "delay", '{"label": "fast", "delay": 0}'),
        ]
        transport = conftest.ScriptedTransport(
            [conftest.tool_turn(*calls), conftest.final_turn("done")]
        )
        orchestrator = conversation.ConversationOrchestrator(
            transport, parallel_tool_calls=True
        )
        conv = _conversation()

        await orchestrator.run(conv, registry)

        assert delay_tool.completed == ["fast", "slow"]
        tool_messages = [m for m in conv.messages if isinstance(m, api_types.ToolMessage)]
        assert [m.tool_call_id for m in tool_messages] == ["slow", "fast"]
        assert [m.content for m in tool_messages] == ['"slow"', '"fast"']

    @_pytest.mark.asyncio
    async def test_failing_parallel_call_cancels_siblings(self) -> None:
        delay_tool = DelayTool()
        registry = tools_registry.ToolRegistry([delay_tool])
        calls = [
            conftest.tool_call("bad", "delay", '{"label": "bad", "delay": 0, "fail": true}'),
            conftest.tool_call("slow", "delay", '{"label": "slow", "delay": 0.05}'),
        ]
        transport = conftest.ScriptedTransport([conftest.tool_turn(*calls)])
        orchestrator = conversation.ConversationOrchestrator(
            transport, parallel_tool_calls=True
        )
        conv = _conversation()

        with _pytest.raises(RuntimeError, match="bad failed"):
            await orchestrator.run(conv, registry)
        await _asyncio.sleep(0.1)

        assert delay_tool.completed == []
        assert len(conv) == 1

    @_pytest.mark.asyncio
    async def test_tool_call_ids_reused_across_rounds(
        self, add_tool: conftest.AddTool, registry: tools_registry.ToolRegistry
    ) -> None:
        transport = conftest.ScriptedTransport(
            [
                conftest.tool_turn(conftest.tool_call("call_0", "add", '{"a": 1, "b": 2}')),
                conftest.tool_turn(conftest.tool_call("call_0", "add", '{"a": 3, "b": 4}')),
                conftest.final_turn("done"),
            ]
        )
        orchestrator = conversation.ConversationOrchestrator(transport)
        conv = _conversation()

        turn = await orchestrator.run(conv, registry)

        assert turn.content == "done"
        assert len(add_tool.calls) == 2
        tool_messages = [m for m in conv.messages if isinstance(m, api_types.ToolMessage)]
        assert [(m.tool_call_id, m.content) for m in tool_messages] == [
            ("call_0", "3"),
            ("call_0", "7"),
        ]

    @_pytest.mark.asyncio
    async def test_duplicate_ids_in_one_turn_rejected_before_tools_run(
        self, add_tool: conftest.AddTool, registry: tools_registry.ToolRegistry
    ) -> None:
        transport = conftest.ScriptedTransport(
            [
                conftest.tool_turn(
                    conftest.tool_call("call_0", "add", '{"a": 1, "b": 2}'),
                    conftest.tool_call("call_0", "add", '{"a": 3, "b": 4}'),
                )
            ]
        )
        orchestrator = conversation.ConversationOrchestrator(transport)
        conv = _conversation()

        with _pytest.raises(errors.MessageValidationError):
            await orchestrator.run(conv, registry)

        assert add_tool.calls == []
        assert len(conv) == 1

    @_pytest.mark.asyncio
    async def test_loop_guard_limits_transport_calls(
        self, registry: tools_registry.ToolRegistry
    ) -> None:
        transport = conftest.ScriptedTransport(
            [
                conftest.tool_turn(conftest.tool_call(f"call_{i}", "add", '{"a": 1, "b": 1}'))
                for i in range(10)
            ]
        )
        orchestrator = conversation.ConversationOrchestrator(transport, max_tool_rounds=2)
        conv = _conversation()

        with _pytest.raises(errors.ToolCallLoopExceededError) as exc_info:
            await orchestrator.run(conv, registry)

        assert exc_info.value.max_tool_rounds == 2
        assert exc_info.value.stage == "orchestration"
        assert transport.call_count == 3
        # Two committed rounds of assistant + tool
        assert len(conv) == 5

    def test_negative_max_tool_rounds_rejected(self) -> None:
        with _pytest.raises(ValueError):
            conversation.ConversationOrchestrator(
                conftest.ScriptedTransport(), max_tool_rounds=-1
            )

    @_pytest.mark.asyncio
    async def test_unknown_tool_is_fatal_after_one_call(
        self, registry: tools_registry.ToolRegistry
    ) -> None:
        transport = conftest.ScriptedTransport(
            [conftest.tool_turn(conftest.tool_call("call_1", "nonexistent"))]
        )
        orchestrator = conversation.ConversationOrchestrator(transport)
        conv = _conversation()

        with _pytest.raises(errors.ToolNotFoundError) as exc_info:
            await orchestrator.run(conv, registry)

        assert exc_info.value.tool_name == "nonexistent"
        assert transport.call_count == 1
        assert len(conv) == 1

    @_pytest.mark.asyncio
    async def test_failed_round_is_not_committed(
        self, registry: tools_registry.ToolRegistry
    ) -> None:
        transport = conftest.ScriptedTransport(
            [
                conftest.tool_turn(
                    conftest.tool_call("ok", "add", '{"a": 1, "b": 1}'),
                    conftest.tool_call("bad", "add", '{"a": "x"}'),
                )
            ]
        )
        orchestrator = conversation.ConversationOrchestrator(transport)
        conv = _conversation()

        with _pytest.raises(errors.InvalidToolArgumentsError):
            await orchestrator.run(conv, registry)

        assert len(conv) == 1

    @_pytest.mark.asyncio
    async def test_transport_error_propagates_unchanged(
        self, registry: tools_registry.ToolRegistry
    ) -> None:
        failure = errors.TransportError("boom", status_code=503)
        transport = conftest.ScriptedTransport([failure])
        orchestrator = conversation.ConversationOrchestrator(transport)

        with _pytest.raises(errors.TransportError) as exc_info:
            await orchestrator.run(_conversation(), registry)

        assert exc_info.value is failure

    @_pytest.mark.asyncio
    async def test_handler_exception_propagates_unchanged(self) -> None:
        def explode(args: conftest.AddInput) -> int:
            raise RuntimeError("handler failed")

        registry = tools_registry.ToolRegistry([tools_base.FunctionTool(explode, name="add")])
        transport = conftest.ScriptedTransport(
            [conftest.tool_turn(conftest.tool_call("call_1", "add", '{"a": 1, "b": 2}'))]
        )
        orchestrator = conversation.ConversationOrchestrator(transport)

        with _pytest.raises(RuntimeError, match="handler failed"):
            await orchestrator.run(_conversation(), registry)

    @_pytest.mark.asyncio
    async def test_callbacks_see_rounds_and_tools(
        self, registry: tools_registry.ToolRegistry
    ) -> None:
        callbacks = RecordingCallbacks()
        transport = conftest.ScriptedTransport(
            [
                conftest.tool_turn(conftest.tool_call("call_1", "add", '{"a": 1, "b": 1}')),
                conftest.final_turn("2"),
            ]
        )
        orchestrator = conversation.ConversationOrchestrator(transport, callbacks=callbacks)

        await orchestrator.run(_conversation(), registry)

        assert callbacks.rounds == [1, 2]
        assert callbacks.tool_calls == ["call_1"]
        assert callbacks.tool_results == ["call_1"]

    @_pytest.mark.asyncio
    async def test_cancellation_mid_round_leaves_no_dangling_tool_call(
        self, registry: tools_registry.ToolRegistry
    ) -> None:
        callbacks = RecordingCallbacks(cancel_after_results=1)
        transport = conftest.ScriptedTransport(
            [
                conftest.tool_turn(
                    conftest.tool_call("call_1", "add", '{"a": 1, "b": 1}'),
                    conftest.tool_call("call_2", "add", '{"a": 2, "b": 2}'),
                )
            ]
        )
        orchestrator = conversation.ConversationOrchestrator(transport, callbacks=callbacks)
        conv = _conversation()

        with _pytest.raises(errors.ConversationCancelledError):
            await orchestrator.run(conv, registry)

        assert callbacks.tool_calls == ["call_1"]
        assert len(conv) == 1

    @_pytest.mark.asyncio
    async def test_cancelled_before_first_request(
        self, registry: tools_registry.ToolRegistry
    ) -> None:
        callbacks = RecordingCallbacks(cancel_after_results=0)
        transport = conftest.ScriptedTransport([conftest.final_turn("never")])
        orchestrator = conversation.ConversationOrchestrator(transport, callbacks=callbacks)

        with _pytest.raises(errors.ConversationCancelledError):
            await orchestrator.run(_conversation(), registry)

        assert transport.call_count == 0
