"""
JSON Schema checks for pipeline records.

One schema per record type lives in hiring/schemas/<name>.schema.json.
The store validates every record before it touches the disk; a record that
does not match is never written.
"""

import json
from pathlib import Path

import jsonschema
from jsonschema.exceptions import best_match

SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"


class SchemaError(Exception):
    """A record does not match its schema."""

    def __init__(self, schema_name: str, message: str, path: str = None):
        self.schema_name = schema_name
        self.path = path
        super().__init__(f"[{schema_name}] {message}" + (f" at {path}" if path else ""))


_validators: dict = {}


def schema_names() -> list[str]:
    return sorted(p.name.removesuffix(".schema.json") for p in SCHEMAS_DIR.glob("*.schema.json"))


def _validator(schema_name: str):
    """Compiled validator for a schema, with format checking (dates) enabled."""
    if schema_name not in _validators:
        schema_path = SCHEMAS_DIR / f"{schema_name}.schema.json"
        if not schema_path.exists():
            raise SchemaError(schema_name, f"Schema file not found: {schema_path}")
        schema = json.loads(schema_path.read_text())
        cls = jsonschema.validators.validator_for(schema)
        cls.check_schema(schema)
        _validators[schema_name] = cls(schema, format_checker=jsonschema.FormatChecker())
    return _validators[schema_name]


def validate(data, schema_name: str) -> None:
    """
    Validate a record (or a list, for collection files) against its schema.

    Only the most relevant failure is reported, with its dotted path
    (e.g. "platforms.0.platform").

    Raises:
        SchemaError: If validation fails
    """
    error = best_match(_validator(schema_name).iter_errors(data))
    if error is None:
        return
    path = ".".join(str(p) for p in error.absolute_path) or "(root)"
    raise SchemaError(schema_name, error.message, path)


def validate_before_write(data, schema_name: str, filepath: Path) -> None:
    """
    Validate data headed for filepath.

    Raises:
        SchemaError: naming the file that would have been written
    """
    try:
        validate(data, schema_name)
    except SchemaError as e:
        raise SchemaError(schema_name, f"Refusing to write invalid data to {filepath}: {e}") from None
