"""
Schema checks for persisted planning documents.

Partition documents and session records are validated when read back and
again right before they are written, so a bad document is reported at the
boundary instead of surfacing later as a KeyError deep in storage code.
"""

import json
from pathlib import Path

import jsonschema
from jsonschema.exceptions import best_match

SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"

_validators: dict[str, jsonschema.Draft7Validator] = {}


class ValidationError(Exception):
    """A document doesn't match its schema."""

    def __init__(self, schema_name: str, message: str, path: str = None):
        self.schema_name = schema_name
        self.path = path
        detail = f"{message} at {path}" if path else message
        super().__init__(f"[{schema_name}] {detail}")


def _validator(schema_name: str) -> jsonschema.Draft7Validator:
    validator = _validators.get(schema_name)
    if validator is None:
        schema_file = SCHEMAS_DIR / f"{schema_name}.schema.json"
        if not schema_file.is_file():
            raise ValidationError(schema_name, f"Schema file not found: {schema_file}")
        validator = jsonschema.Draft7Validator(json.loads(schema_file.read_text()))
        _validators[schema_name] = validator
    return validator


def validate(data: dict, schema_name: str) -> None:
    """
    Check data against a schema ("storage_data" or "session").

    Only the most relevant error is reported, with its dotted location
    (e.g. plans.<goalId>.todos.0.isComplete).

    Raises:
        ValidationError: if data doesn't match
    """
    error = best_match(_validator(schema_name).iter_errors(data))
    if error is None:
        return
    location = ".".join(str(part) for part in error.absolute_path) or "(root)"
    raise ValidationError(schema_name, error.message, location)


def validate_before_write(data: dict, schema_name: str, target: str) -> None:
    """
    Like validate(), but phrased for a write that is about to happen.

    Args:
        target: File path or redis key the data was headed for
    """
    try:
        validate(data, schema_name)
    except ValidationError as e:
        raise ValidationError(schema_name, f"Refusing to write invalid data to {target}: {e}") from None
