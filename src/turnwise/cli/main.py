"""
Main CLI entry point for Turnwise.

Provides the command-line interface using Click.
"""

import asyncio as _asyncio
import json as _json
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import click as _click
import pydantic as _pydantic
import yaml as _yaml

import turnwise
import turnwise.api as api
import turnwise.builder as builder
import turnwise.config as config
import turnwise.errors as errors
import turnwise.logging as turnwise_logging
import turnwise.tools as tools

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}


def _run_async(coro: _typing.Coroutine[_typing.Any, _typing.Any, _typing.Any]) -> _typing.Any:
    """Run an async coroutine synchronously."""
    return _asyncio.run(coro)


def _make_transport(settings: config.Settings) -> api.CompletionTransport:
    """Create the transport for the configured endpoint."""
    return api.OpenAICompatibleTransport.from_settings(settings)


def _make_logger(settings: config.Settings) -> turnwise_logging.ConversationLogger | None:
    if not settings.log_conversations:
        return None
    return turnwise_logging.ConversationLogger(
        log_dir=settings.log_dir,
        private_mode=settings.log_dir_private,
        transport="openai",
        model=settings.model,
    )


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(turnwise.__version__, "-v", "--version", prog_name="turnwise")
@_click.option("--verbose", is_flag=True, help="Enable debug logging to stderr")
@_click.pass_context
def cli(ctx: _click.Context, verbose: bool) -> None:
    """Turnwise - tool-calling chat completions with validated structured output."""
    if verbose:
        _logging.basicConfig(
            level=_logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    ctx.ensure_object(dict)
    if "settings" not in ctx.obj:
        try:
            ctx.obj["settings"] = config.Settings()
        except _pydantic.ValidationError as e:
            raise _click.ClickException(f"Invalid configuration: {e}") from e


@cli.command()
@_click.argument("prompt")
@_click.option("--system", "system_prompt", type=str, default=None, help="System prompt")
@_click.option("--model", type=str, default=None, help="Model to use for completions")
@_click.option(
    "--schema",
    "schema_file",
    type=_click.Path(exists=True, dir_okay=False, path_type=_pathlib.Path),
    default=None,
    help="JSON Schema file; the answer must validate against it",
)
@_click.option(
    "--max-retries",
    type=_click.IntRange(min=0),
    default=None,
    help="Corrective retries for structured output",
)
@_click.option("--fetch-url", is_flag=True, help="Let the model fetch web pages")
@_click.pass_context
def ask(
    ctx: _click.Context,
    prompt: str,
    system_prompt: str | None,
    model: str | None,
    schema_file: _pathlib.Path | None,
    max_retries: int | None,
    fetch_url: bool,
) -> None:
    """Send PROMPT and print the final answer.

    Examples:
        turnwise ask "What is the capital of France?"
        turnwise ask --fetch-url "Summarize https://example.com"
        turnwise ask --schema answer.json "Name three primes"
    """
    settings: config.Settings = ctx.obj["settings"]
    if model:
        settings = settings.model_copy(update={"model": model})

    response_schema: dict[str, _typing.Any] | None = None
    if schema_file is not None:
        try:
            response_schema = _json.loads(schema_file.read_text(encoding="utf-8"))
        except ValueError as e:
            raise _click.ClickException(f"Invalid schema file {schema_file}: {e}") from e

    async def run() -> _typing.Any:
        logger = _make_logger(settings)
        async with _make_transport(settings) as transport:
            request_builder = builder.ChatRequestBuilder(transport, settings)
            if system_prompt:
                request_builder.system_prompt(system_prompt)
            if fetch_url:
                request_builder.use_tool(tools.FetchUrlTool())
            request_builder.user_prompt(prompt)
            if response_schema is not None:
                request_builder.use_response_schema(response_schema)
            if max_retries is not None:
                request_builder.with_max_retries(max_retries)
            if logger:
                request_builder.with_logger(logger)

            request = request_builder.build()
            try:
                if response_schema is not None:
                    return await request.get_structured()
                return await request.get_plain_text()
            finally:
                if logger:
                    logger.close()

    try:
        answer = _run_async(run())
    except errors.ChatCompletionError as e:
        _click.echo(f"Error ({e.stage}): {e.message}", err=True)
        ctx.exit(1)

    if response_schema is not None:
        _click.echo(_json.dumps(answer, indent=2, ensure_ascii=False))
    else:
        _click.echo(answer)


@cli.command(name="config")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.pass_context
def config_cmd(ctx: _click.Context, as_json: bool) -> None:
    """Show effective configuration (API key masked)."""
    settings: config.Settings = ctx.obj["settings"]
    data = settings.to_display_dict()
    if as_json:
        _click.echo(_json.dumps(data, indent=2))
    else:
        _click.echo(f"# Config file: {config.get_config_file()}")
        _click.echo(_yaml.safe_dump(data, sort_keys=False).rstrip())


@cli.group()
def log() -> None:
    """Conversation log commands."""


@log.command(name="show")
@_click.argument(
    "log_file",
    type=_click.Path(exists=True, dir_okay=False, path_type=_pathlib.Path),
)
@_click.option("--type", "event_type", type=str, default=None, help="Only show this event type")
@_click.option("--json", "as_json", is_flag=True, help="Output events as JSON lines")
def log_show(log_file: _pathlib.Path, event_type: str | None, as_json: bool) -> None:
    """Print the events of a JSONL conversation log."""
    reader = turnwise_logging.LogReader(log_file)
    events = reader.get_events(event_type)

    if as_json:
        for event in events:
            _click.echo(_json.dumps(event))
        return

    info = reader.get_session_info()
    if info:
        _click.echo(
            f"Session {info.get('session_id', '?')} "
            f"({info.get('transport', '?')}, {info.get('model', '?')})"
        )
    for event in events:
        _click.echo(_format_event(event))

    summary = reader.summary()
    _click.echo(
        f"\n{summary['requests']} request(s), {summary['tool_calls']} tool call(s), "
        f"{summary['validation_failures']} validation failure(s), {summary['errors']} error(s)"
    )


def _format_event(event: dict[str, _typing.Any]) -> str:
    """One-line rendering of a log event."""
    number = event.get("event_number", "?")
    event_type = event.get("event_type", "unknown")
    prefix = f"[{number}] {event_type}"

    match event_type:
        case "request":
            return f"{prefix}: round {event.get('round')}, {len(event.get('messages', []))} message(s)"
        case "turn":
            if event.get("is_tool_call_turn"):
                names = [tc["function"]["name"] for tc in event.get("tool_calls", [])]
                return f"{prefix}: tool calls {', '.join(names)}"
            return f"{prefix}: {event.get('content', '')}"
        case "tool_call":
            return f"{prefix}: {event.get('tool_name')} {event.get('arguments')}"
        case "tool_result":
            return f"{prefix}: {event.get('tool_name')} -> {event.get('output')}"
        case "validation_failure":
            return f"{prefix}: attempt {event.get('attempt')}: {event.get('error')}"
        case "error":
            return f"{prefix}: {event.get('error')}"
        case _:
            return prefix


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="turnwise")


if __name__ == "__main__":
    main()
