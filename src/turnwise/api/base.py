"""
Abstract base class for completion transports.

A transport maps provider-agnostic CompletionOptions to a concrete
vendor API and maps the reply back to a single CompletionTurn. The
orchestration core knows nothing about wire formats.
"""

from __future__ import annotations

import abc as _abc
import types as _types

import turnwise.api.types as types


class CompletionTransport(_abc.ABC):
    """
    Abstract base for completion transports.

    Implementations must:
    - treat the options snapshot as read-only,
    - return exactly one turn per call,
    - raise TransportError (or let it propagate) on failure; the core
      never retries transport failures.
    """

    @property
    @_abc.abstractmethod
    def name(self) -> str:
        """Transport name (e.g., 'openai')."""
        ...

    @_abc.abstractmethod
    async def send(self, options: types.CompletionOptions) -> types.CompletionTurn:
        """
        Send one request and return the model's turn.

        Args:
            options: Immutable snapshot of the conversation and request settings

        Returns:
            The model's turn (final answer or tool-call request)
        """
        ...

    async def close(self) -> None:  # noqa: B027
        """Release any network resources held by the transport."""
        pass  # Optional, default no-op

    async def __aenter__(self) -> CompletionTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: _types.TracebackType | None,
    ) -> None:
        await self.close()
