"""
Shared pytest fixtures for Turnwise tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import pathlib as _pathlib
import typing as _typing
import unittest.mock as _mock

import pydantic as _pydantic
import pytest as _pytest

import turnwise.api.base as api_base
import turnwise.api.types as api_types
import turnwise.config as config
import turnwise.tools.base as tools_base
import turnwise.tools.registry as tools_registry

# Environment keys that should be cleared for isolated tests
ENV_KEYS_TO_CLEAR = [
    "OPENAI_API_KEY",
]
ENV_PREFIX_TO_CLEAR = "TURNWISE_"


# =============================================================================
# Transport and tool doubles
# =============================================================================

ScriptStep = _typing.Union[
    api_types.CompletionTurn,
    BaseException,
    _typing.Callable[[api_types.CompletionOptions], api_types.CompletionTurn],
]


class ScriptedTransport(api_base.CompletionTransport):
    """
    Transport that replays a fixed script of turns.

    Each step is a CompletionTurn to return, an exception to raise, or a
    callable receiving the request snapshot. Every snapshot is recorded.
    """

    def __init__(self, steps: _typing.Iterable[ScriptStep] = ()) -> None:
        self._steps = list(steps)
        self.requests: list[api_types.CompletionOptions] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def send(self, options: api_types.CompletionOptions) -> api_types.CompletionTurn:
        self.requests.append(options)
        if not self._steps:
            raise AssertionError(f"Transport called more often than scripted ({self.call_count})")
        step = self._steps.pop(0)
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            return step(options)
        return step

    async def close(self) -> None:
        self.closed = True


class AddInput(_pydantic.BaseModel):
    a: int
    b: int


class AddTool(tools_base.Tool[AddInput, int]):
    """Adds two integers and remembers what it was called with."""

    def __init__(self) -> None:
        self.calls: list[AddInput] = []

    @property
    def name(self) -> str:
        return "add"

    @property
    def description(self) -> str:
        return "Add two integers"

    @property
    def input_type(self) -> type[AddInput]:
        return AddInput

    async def handle(self, input: AddInput) -> int:
        self.calls.append(input)
        return input.a + input.b


def tool_call(call_id: str, name: str, arguments: str = "{}") -> api_types.ToolCall:
    """Shorthand for a ToolCall as a transport would produce it."""
    return api_types.ToolCall(id=call_id, name=name, arguments=arguments)


def tool_turn(*calls: api_types.ToolCall, content: str = "") -> api_types.CompletionTurn:
    """Shorthand for a tool-call turn."""
    return api_types.CompletionTurn.with_tool_calls(calls, content=content)


def final_turn(content: str) -> api_types.CompletionTurn:
    """Shorthand for a final turn."""
    return api_types.CompletionTurn.final(content)


# =============================================================================
# Fixtures
# =============================================================================


@_pytest.fixture
def add_tool() -> AddTool:
    return AddTool()


@_pytest.fixture
def registry(add_tool: AddTool) -> tools_registry.ToolRegistry:
    """Registry holding only the add tool."""
    return tools_registry.ToolRegistry([add_tool])


@_pytest.fixture
def clean_env(tmp_path: _pathlib.Path) -> dict[str, str]:
    """
    Return environment dict with Turnwise-related keys removed.

    TURNWISE_CONFIG_FILE points at a file that does not exist, so the
    user's own config file never leaks into tests.
    """
    env = {
        k: v
        for k, v in _os.environ.items()
        if k not in ENV_KEYS_TO_CLEAR and not k.startswith(ENV_PREFIX_TO_CLEAR)
    }
    env["TURNWISE_CONFIG_FILE"] = str(tmp_path / "no-such-config.yaml")
    return env


@_pytest.fixture
def isolated_env(clean_env: dict[str, str]) -> _typing.Any:
    """
    Context manager that isolates tests from environment variables.

    Usage:
        def test_something(isolated_env):
            with isolated_env:
                settings = config.Settings.construct_without_dotenv()
    """
    return _mock.patch.dict(_os.environ, clean_env, clear=True)


@_pytest.fixture
def clean_settings(isolated_env: _typing.Any) -> config.Settings:
    """
    Settings instance isolated from environment and .env file.

    This fixture ensures tests get predictable default settings.
    """
    with isolated_env:
        return config.Settings.construct_without_dotenv()
