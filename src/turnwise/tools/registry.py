"""
Tool registry for managing available tools.

The registry provides a central place to register, look up, and list
tools. One registry is built per request configuration and is only
read while a request is running.
"""

from __future__ import annotations

import logging as _logging
import types as _types
import typing as _typing

import turnwise.api.types as api_types
import turnwise.errors as errors
import turnwise.tools.base as base

_logger = _logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry for tool instances.

    Tools can be registered by name and looked up for execution.
    The registry also provides the definitions advertised to the model.
    """

    def __init__(self, tools: _typing.Iterable[base.Tool[_typing.Any, _typing.Any]] = ()) -> None:
        self._tools: dict[str, base.Tool[_typing.Any, _typing.Any]] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: base.Tool[_typing.Any, _typing.Any]) -> None:
        """
        Register a tool instance.

        Args:
            tool: Tool instance to register

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        _logger.debug("Registered tool: %s", tool.name)

    def get(self, name: str) -> base.Tool[_typing.Any, _typing.Any] | None:
        """
        Get a tool by name.

        Args:
            name: Tool name (case-sensitive)

        Returns:
            Tool instance or None if not found
        """
        return self._tools.get(name)

    def get_or_raise(self, name: str) -> base.Tool[_typing.Any, _typing.Any]:
        """
        Get a tool by name, raising if not found.

        Args:
            name: Tool name (case-sensitive)

        Returns:
            Tool instance

        Raises:
            ToolNotFoundError: If tool is not found
        """
        tool = self._tools.get(name)
        if tool is None:
            raise errors.ToolNotFoundError(name, self._tools.keys())
        return tool

    def list_tools(self) -> list[base.Tool[_typing.Any, _typing.Any]]:
        """
        List all registered tools.

        Returns:
            List of tool instances, in registration order
        """
        return list(self._tools.values())

    def list_names(self) -> list[str]:
        """Names of all registered tools, in registration order."""
        return list(self._tools.keys())

    def definitions(self) -> tuple[api_types.ToolDefinition, ...]:
        """Definitions advertised to the transport, in registration order."""
        return tuple(tool.definition for tool in self._tools.values())

    def as_mapping(self) -> _typing.Mapping[str, base.Tool[_typing.Any, _typing.Any]]:
        """Read-only view of the name -> tool mapping."""
        return _types.MappingProxyType(self._tools)

    def copy(self) -> ToolRegistry:
        """Shallow copy sharing the same tool instances."""
        return ToolRegistry(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> _typing.Iterator[base.Tool[_typing.Any, _typing.Any]]:
        return iter(self.list_tools())
