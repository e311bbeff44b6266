"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with TURNWISE_ prefix
3. .env file (only when TURNWISE_ENV_FILE points at one)
4. YAML config file: TURNWISE_CONFIG_FILE, else ~/.config/turnwise/config.yaml

The API key is also read from OPENAI_API_KEY so existing OpenAI setups
work without extra configuration.
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import turnwise.constants as _constants

ENV_CONFIG_FILE = "TURNWISE_CONFIG_FILE"
"""Environment variable overriding the YAML config file location."""

ENV_ENV_FILE = "TURNWISE_ENV_FILE"
"""Environment variable selecting a .env file to load."""


def _get_env_file() -> str | None:
    """Determine which .env file to load.

    Only an explicit TURNWISE_ENV_FILE is honored; if it is set but the
    file doesn't exist, no .env is loaded rather than falling back silently.
    """
    if env_file := _os.environ.get(ENV_ENV_FILE):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


def get_config_file() -> _pathlib.Path:
    """Path of the YAML config file (which may not exist)."""
    if config_file := _os.environ.get(ENV_CONFIG_FILE):
        return _pathlib.Path(config_file).expanduser()
    return _pathlib.Path.home() / ".config" / "turnwise" / "config.yaml"


class Settings(_pydantic_settings.BaseSettings):
    """
    Turnwise configuration settings.

    All settings can be overridden via environment variables with TURNWISE_ prefix,
    e.g. TURNWISE_MODEL=gpt-4o or TURNWISE_MAX_RETRIES=0.
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="TURNWISE_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    # Endpoint
    model: str = _pydantic.Field(
        default=_constants.DEFAULT_MODEL,
        description="Chat model to request",
    )
    base_url: str = _pydantic.Field(
        default=_constants.DEFAULT_BASE_URL,
        description="Root of the OpenAI-compatible endpoint",
    )
    api_key: _pydantic.SecretStr | None = _pydantic.Field(
        default=None,
        validation_alias=_pydantic.AliasChoices("TURNWISE_API_KEY", "OPENAI_API_KEY"),
        description="Bearer token for the endpoint",
    )
    request_timeout: float = _pydantic.Field(
        default=_constants.DEFAULT_REQUEST_TIMEOUT,
        gt=0,
        description="HTTP timeout for one completion request, in seconds",
    )

    # Orchestration
    max_retries: int = _pydantic.Field(
        default=_constants.DEFAULT_MAX_RETRIES,
        ge=0,
        description="Corrective retries for structured output",
    )
    max_tool_rounds: int = _pydantic.Field(
        default=_constants.DEFAULT_MAX_TOOL_ROUNDS,
        ge=1,
        description="Maximum rounds of tool execution per request",
    )
    parallel_tool_calls: bool = _pydantic.Field(
        default=False,
        description="Run the tool calls of one turn concurrently",
    )

    # Logging
    log_conversations: bool = _pydantic.Field(
        default=False,
        description="Write a JSONL log of every conversation",
    )
    log_dir: str | None = _pydantic.Field(
        default=None,
        description="Directory for conversation logs (default: /tmp/turnwise-logs)",
    )
    log_dir_private: bool = _pydantic.Field(
        default=True,
        description="Restrict the log directory to the current user (drwx------)",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args) - highest
        2. env_settings (TURNWISE_* env vars)
        3. dotenv_settings (.env file)
        4. YAML config file
        5. (defaults via Field definitions) - lowest
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            _pydantic_settings.YamlConfigSettingsSource(
                settings_cls, yaml_file=get_config_file()
            ),
            file_secret_settings,
        )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings from environment variables only, without loading .env file.

        Useful for test isolation and for reproducing issues without .env
        interference.
        """
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    def get_api_key(self) -> str | None:
        """The API key as plain text (None when unset)."""
        return self.api_key.get_secret_value() if self.api_key else None

    def to_display_dict(self) -> dict[str, _typing.Any]:
        """Effective settings with the API key masked, for display."""
        data = self.model_dump(mode="json")
        key = self.get_api_key()
        if key is None:
            data["api_key"] = None
        elif len(key) > 12:
            data["api_key"] = f"{key[:4]}...{key[-4:]}"
        else:
            data["api_key"] = "***"
        return data
