"""
JSONL conversation log.

One JSON object per line, numbered in write order. The orchestrator and
the structured validator report into it when a logger is supplied; the
file can be read back with LogReader or `turnwise log show`.

Event types:
    session_start, request, turn, tool_call, tool_result,
    validation_failure, error, session_end
"""

import datetime as _datetime
import json as _json
import pathlib as _pathlib
import types as _types
import typing as _typing

import turnwise.api.types as api_types

DEFAULT_LOG_DIR = _pathlib.Path("/tmp/turnwise-logs")


def _resolve_log_path(
    log_dir: _pathlib.Path | str | None,
    log_file: _pathlib.Path | str | None,
    session_id: str,
    private_mode: bool,
) -> _pathlib.Path:
    """Pick the log file path, creating its directory."""
    if log_file:
        path = _pathlib.Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    directory = _pathlib.Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)
    if private_mode:
        directory.chmod(0o700)
    return directory / f"turnwise_{session_id}.jsonl"


class ConversationLogger:
    """
    Append-only JSONL writer for one session.

    Usage:
        with ConversationLogger(log_dir="/tmp", transport="openai", model="gpt-4o") as logger:
            request = builder.with_logger(logger).build()
            await request.get_plain_text()
    """

    def __init__(
        self,
        *,
        log_dir: _pathlib.Path | str | None = None,
        log_file: _pathlib.Path | str | None = None,
        private_mode: bool = True,
        transport: str = "unknown",
        model: str = "unknown",
        enabled: bool = True,
    ) -> None:
        """
        Open the log and write session_start.

        Args:
            log_dir: Directory for an auto-named log (default: /tmp/turnwise-logs).
            log_file: Exact file to write; takes precedence over log_dir.
            private_mode: Make log_dir readable by the owner only (0o700).
            transport: Transport name recorded in session_start.
            model: Model name recorded in session_start.
            enabled: When False nothing is created or written.
        """
        self._enabled = enabled
        self._session_id = _datetime.datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        self._written = 0
        self._path: _pathlib.Path | None = None
        self._stream: _typing.TextIO | None = None

        if not enabled:
            return

        self._path = _resolve_log_path(log_dir, log_file, self._session_id, private_mode)
        self._stream = self._path.open("w", encoding="utf-8")
        self._emit(
            "session_start",
            session_id=self._session_id,
            transport=transport,
            model=model,
        )

    def _emit(self, event_type: str, **fields: _typing.Any) -> None:
        if self._stream is None:
            return

        self._written += 1
        record = {
            "timestamp": _datetime.datetime.now().isoformat(),
            "event_number": self._written,
            "event_type": event_type,
            **fields,
        }
        try:
            self._stream.write(_json.dumps(record, default=str) + "\n")
            self._stream.flush()
        except OSError:
            # Write failures never interrupt a request
            pass

    def log_request(self, options: api_types.CompletionOptions, *, round_num: int) -> None:
        """Record the snapshot sent to the transport."""
        self._emit(
            "request",
            round=round_num,
            model=options.model,
            response_format=options.response_format.value,
            tools=[t.name for t in options.tools],
            messages=[api_types.message_to_dict(m) for m in options.messages],
        )

    def log_turn(self, turn: api_types.CompletionTurn, *, round_num: int) -> None:
        """Record a turn returned by the transport."""
        self._emit("turn", round=round_num, **turn.to_log_dict())

    def log_tool_call(self, tool_call: api_types.ToolCall) -> None:
        self._emit(
            "tool_call",
            tool_name=tool_call.name,
            tool_id=tool_call.id,
            arguments=tool_call.arguments,
        )

    def log_tool_result(
        self,
        tool_call: api_types.ToolCall,
        output: str,
        duration_ms: float | None = None,
    ) -> None:
        """Record the serialized output of a tool call."""
        extra = {} if duration_ms is None else {"duration_ms": round(duration_ms, 2)}
        self._emit(
            "tool_result",
            tool_name=tool_call.name,
            tool_id=tool_call.id,
            output=output,
            **extra,
        )

    def log_validation_failure(
        self,
        *,
        attempt: int,
        content: str,
        error: str,
        malformed: bool,
    ) -> None:
        """Record a structured answer that did not validate."""
        self._emit(
            "validation_failure",
            attempt=attempt,
            content=content,
            error=error,
            malformed=malformed,
        )

    def log_error(self, error: str, context: str | None = None) -> None:
        self._emit("error", error=error, context=context)

    def log_event(self, event_type: str, **fields: _typing.Any) -> None:
        """Record an event type the logger has no dedicated method for."""
        self._emit(event_type, **fields)

    @property
    def file_path(self) -> _pathlib.Path | None:
        """Log file location (None when disabled)."""
        return self._path

    @property
    def enabled(self) -> bool:
        return self._enabled

    def close(self) -> None:
        """Write session_end and close the file. Safe to call twice."""
        if self._stream is None:
            return
        self._emit(
            "session_end",
            session_id=self._session_id,
            total_events=self._written + 1,
        )
        self._stream.close()
        self._stream = None

    def __enter__(self) -> "ConversationLogger":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: _types.TracebackType | None,
    ) -> None:
        self.close()
