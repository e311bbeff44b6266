"""
Tool system for Turnwise.

Tools are registered in a ToolRegistry and invoked by the orchestrator
when the model requests them.
"""

from turnwise.tools.base import FunctionTool, Tool, tool
from turnwise.tools.fetch_url import FetchUrlInput, FetchUrlResult, FetchUrlTool
from turnwise.tools.registry import ToolRegistry

__all__ = [
    "FetchUrlInput",
    "FetchUrlResult",
    "FetchUrlTool",
    "FunctionTool",
    "Tool",
    "ToolRegistry",
    "tool",
]
