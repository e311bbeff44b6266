"""
Reading conversation logs back.

Turns a JSONL file written by ConversationLogger into a list of event
dicts and answers the questions `turnwise log show` asks of it.
"""

import json as _json
import pathlib as _pathlib
import typing as _typing

Event = dict[str, _typing.Any]

_SUMMARY_KEYS = {
    "request": "requests",
    "tool_call": "tool_calls",
    "validation_failure": "validation_failures",
    "error": "errors",
}


def _parse_lines(lines: _typing.Iterable[str]) -> list[Event]:
    events: list[Event] = []
    for raw in lines:
        raw = raw.strip()
        if not raw:
            continue
        try:
            events.append(_json.loads(raw))
        except _json.JSONDecodeError:
            # Truncated final line after a crash
            continue
    return events


class LogReader:
    """
    Lazy reader for one conversation log.

    Usage:
        reader = LogReader("turnwise_20240101_120000.jsonl")
        for event in reader.get_events("tool_call"):
            print(event["tool_name"])
    """

    def __init__(self, log_path: _pathlib.Path | str) -> None:
        self._path = _pathlib.Path(log_path)
        self._cache: list[Event] | None = None

    @property
    def events(self) -> list[Event]:
        """All parsed events, read from disk on first access."""
        if self._cache is None:
            self._cache = _parse_lines(self._path.read_text(encoding="utf-8").splitlines())
        return self._cache

    def get_events(self, event_type: str | None = None) -> list[Event]:
        """Events in file order, optionally only those of one type."""
        if event_type is None:
            return list(self.events)
        return [e for e in self.events if e.get("event_type") == event_type]

    def get_session_info(self) -> dict[str, _typing.Any]:
        """
        Session metadata.

        Returns:
            session_id, transport, model and start_time from session_start;
            end_time and total_events from session_end. Keys are absent
            when the corresponding event is missing.
        """
        info: dict[str, _typing.Any] = {}
        start = next(iter(self.get_events("session_start")), None)
        if start is not None:
            info.update(
                session_id=start.get("session_id"),
                transport=start.get("transport"),
                model=start.get("model"),
                start_time=start.get("timestamp"),
            )
        ends = self.get_events("session_end")
        if ends:
            info.update(end_time=ends[-1].get("timestamp"), total_events=ends[-1].get("total_events"))
        return info

    def summary(self) -> dict[str, int]:
        """Number of requests, tool calls, validation failures and errors."""
        counts = dict.fromkeys(_SUMMARY_KEYS.values(), 0)
        for event in self.events:
            key = _SUMMARY_KEYS.get(event.get("event_type", ""))
            if key is not None:
                counts[key] += 1
        return counts
