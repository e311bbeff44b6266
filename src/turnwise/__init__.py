"""
Turnwise - tool-calling chat completions with validated structured output.

Drives an LLM chat-completion endpoint through tool-call rounds until it
produces a final answer, and coerces that answer into schema-valid JSON.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("turnwise")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)

from turnwise.builder import ChatRequest, ChatRequestBuilder  # noqa: E402
from turnwise.config import Settings  # noqa: E402

__all__ = ["__version__", "__version_info__", "ChatRequest", "ChatRequestBuilder", "Settings"]
