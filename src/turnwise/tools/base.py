"""
Base classes for the tool system.

Tools are the way the model reaches the outside world. Each tool has a
name, a description, a typed input (a pydantic model whose JSON Schema
is advertised to the model) and an async handler.
"""

from __future__ import annotations

import abc as _abc
import asyncio as _asyncio
import inspect as _inspect
import typing as _typing

import pydantic as _pydantic

import turnwise.api.types as api_types
import turnwise.schema as schema

InputT = _typing.TypeVar("InputT", bound=_pydantic.BaseModel)
OutputT = _typing.TypeVar("OutputT")


class Tool(_abc.ABC, _typing.Generic[InputT, OutputT]):
    """
    Abstract base class for all tools.

    Subclasses must implement:
    - name (property): The tool's identifier (used in API calls)
    - description (property): Human-readable description for the model
    - input_type (property): Pydantic model the arguments deserialize into
    - handle(): The actual tool implementation

    The input schema is generated from input_type; override input_schema
    to advertise a hand-written schema instead.
    """

    _cached_schema: dict[str, _typing.Any] | None = None

    @property
    @_abc.abstractmethod
    def name(self) -> str:
        """Tool name (e.g., 'fetch_url')."""
        ...

    @property
    @_abc.abstractmethod
    def description(self) -> str:
        """Human-readable description for the model."""
        ...

    @property
    @_abc.abstractmethod
    def input_type(self) -> type[InputT]:
        """Pydantic model the validated arguments are deserialized into."""
        ...

    @_abc.abstractmethod
    async def handle(self, input: InputT) -> OutputT:
        """
        Execute the tool.

        Args:
            input: Deserialized, schema-valid arguments

        Returns:
            Any value pydantic can serialize to JSON
        """
        ...

    @property
    def input_schema(self) -> dict[str, _typing.Any]:
        """JSON Schema for the tool input, generated from input_type."""
        if self._cached_schema is None:
            self._cached_schema = schema.schema_for(self.input_type)
        return self._cached_schema

    @property
    def definition(self) -> api_types.ToolDefinition:
        """Definition advertised to the transport."""
        return api_types.ToolDefinition(
            name=self.name,
            description=self.description,
            parameters_schema=self.input_schema,
        )

    def parse_input(self, arguments: dict[str, _typing.Any]) -> InputT:
        """
        Deserialize schema-valid arguments into input_type.

        Raises:
            pydantic.ValidationError: If the arguments don't fit the model
        """
        return self.input_type.model_validate(arguments)

    def serialize_output(self, output: OutputT) -> str:
        """Serialize a handler result to JSON text."""
        return _pydantic.TypeAdapter(type(output)).dump_json(output).decode("utf-8")

    def to_openai_format(self) -> dict[str, _typing.Any]:
        """Convert to OpenAI function-tool format."""
        return self.definition.to_openai_format()

    def __repr__(self) -> str:
        return f"<Tool {self.name}>"


class FunctionTool(Tool[_pydantic.BaseModel, _typing.Any]):
    """
    Tool wrapping a plain function that takes one pydantic model.

    Sync functions run in a worker thread so they don't block the event loop.
    """

    def __init__(
        self,
        func: _typing.Callable[[_typing.Any], _typing.Any],
        *,
        name: str | None = None,
        description: str | None = None,
        input_type: type[_pydantic.BaseModel] | None = None,
    ) -> None:
        self._func = func
        self._name = name or func.__name__
        self._description = description or _inspect.getdoc(func) or ""
        self._input_type = input_type or _infer_input_type(func)

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def input_type(self) -> type[_pydantic.BaseModel]:
        return self._input_type

    async def handle(self, input: _pydantic.BaseModel) -> _typing.Any:
        if _inspect.iscoroutinefunction(self._func):
            return await self._func(input)
        return await _asyncio.to_thread(self._func, input)


def _infer_input_type(func: _typing.Callable[..., _typing.Any]) -> type[_pydantic.BaseModel]:
    """Read the pydantic model from the function's single parameter annotation."""
    params = list(_inspect.signature(func).parameters.values())
    if len(params) != 1:
        raise TypeError(
            f"Tool function '{func.__name__}' must take exactly one argument, got {len(params)}"
        )
    hints = _typing.get_type_hints(func)
    annotation = hints.get(params[0].name)
    if not (isinstance(annotation, type) and issubclass(annotation, _pydantic.BaseModel)):
        raise TypeError(
            f"Parameter '{params[0].name}' of tool function '{func.__name__}' "
            "must be annotated with a pydantic model"
        )
    return annotation


def tool(
    *,
    name: str | None = None,
    description: str | None = None,
) -> _typing.Callable[[_typing.Callable[[_typing.Any], _typing.Any]], FunctionTool]:
    """
    Decorator turning a function into a FunctionTool.

    Example:
        @tool(name="add")
        def add(args: AddInput) -> int:
            '''Add two numbers.'''
            return args.a + args.b
    """

    def decorator(func: _typing.Callable[[_typing.Any], _typing.Any]) -> FunctionTool:
        return FunctionTool(func, name=name, description=description)

    return decorator
