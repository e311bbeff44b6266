"""
JSON Schema generation and validation.

Schemas are generated from Python types with pydantic and checked with
jsonschema. Validation failures are returned as values, not raised:
a model producing invalid JSON is an expected outcome, and the
structured-output retry loop branches on it.
"""

import dataclasses as _dataclasses
import json as _json
import typing as _typing

import jsonschema as _jsonschema
import jsonschema.validators as _jsonschema_validators
import pydantic as _pydantic

import turnwise.constants as _constants


def schema_for(type_: _typing.Any) -> dict[str, _typing.Any]:
    """
    Generate a JSON Schema for a Python type.

    Accepts pydantic models, dataclasses, TypedDicts and plain annotations
    (anything pydantic's TypeAdapter understands).

    Args:
        type_: The type to describe

    Returns:
        JSON Schema dict
    """
    if isinstance(type_, type) and issubclass(type_, _pydantic.BaseModel):
        return type_.model_json_schema()
    return _pydantic.TypeAdapter(type_).json_schema()


def check_schema(schema: dict[str, _typing.Any]) -> None:
    """
    Verify that a schema is itself a valid JSON Schema.

    Raises:
        jsonschema.SchemaError: If the schema is malformed
    """
    validator_cls = _jsonschema_validators.validator_for(
        schema, default=_jsonschema.Draft202012Validator
    )
    validator_cls.check_schema(schema)


@_dataclasses.dataclass
class ValidationOutcome:
    """
    Result of validating a JSON document against a schema.

    Exactly one of these holds:
    - is_valid: value holds the parsed document
    - parse_error is set: the text was not JSON at all
    - violations is non-empty: well-formed JSON that breaks the schema
    """

    value: _typing.Any = None
    parse_error: str | None = None
    violations: list[str] = _dataclasses.field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.parse_error is None and not self.violations

    @property
    def is_malformed(self) -> bool:
        """Whether the text failed to parse as JSON."""
        return self.parse_error is not None

    def error_text(self, separator: str = "\n") -> str:
        """Human-readable description of what was wrong (empty when valid)."""
        if self.parse_error is not None:
            return self.parse_error
        return separator.join(self.violations)

    def feedback_message(self) -> str:
        """Corrective message to send back to the model."""
        if self.parse_error is not None:
            return f"{_constants.INVALID_JSON_FEEDBACK_PREFIX}\n{self.parse_error}"
        return f"{_constants.SCHEMA_VIOLATION_FEEDBACK_PREFIX}\n{self.error_text()}"


def _format_violation(error: _jsonschema.ValidationError) -> str:
    return f"{error.json_path}: {error.message}"


def validate_value(value: _typing.Any, schema: dict[str, _typing.Any]) -> list[str]:
    """
    Validate an already-parsed value against a schema.

    Returns:
        List of violation descriptions, ordered by JSON path (empty if valid)
    """
    validator_cls = _jsonschema_validators.validator_for(
        schema, default=_jsonschema.Draft202012Validator
    )
    validator = validator_cls(schema)
    errors = sorted(validator.iter_errors(value), key=lambda e: e.json_path)
    return [_format_violation(e) for e in errors]


def validate_json(text: str, schema: dict[str, _typing.Any]) -> ValidationOutcome:
    """
    Parse text as JSON and validate it against a schema.

    Args:
        text: Raw text (typically model output or tool arguments)
        schema: JSON Schema to validate against

    Returns:
        ValidationOutcome distinguishing malformed JSON from schema violations
    """
    try:
        value = _json.loads(text)
    except ValueError as e:
        return ValidationOutcome(parse_error=f"Malformed JSON: {e}")

    violations = validate_value(value, schema)
    if violations:
        return ValidationOutcome(value=value, violations=violations)
    return ValidationOutcome(value=value)
