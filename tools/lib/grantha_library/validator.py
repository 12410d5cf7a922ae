"""JSON Schema validation for grantha export files.

This module validates import documents against the export schema bundled
in grantha_library/schemas/ before anything is written to the store.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Tuple

from jsonschema import validators

from grantha_library.exceptions import SchemaValidationError

EXPORT_SCHEMA = 'grantha-export.schema.json'


def get_schema_path(schema_name: str) -> Path:
    """Returns the absolute path to a bundled schema file.

    Raises:
        FileNotFoundError: If the schema does not exist.
    """
    schema_path = Path(__file__).parent / 'schemas' / schema_name
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_path}")
    return schema_path


@lru_cache(maxsize=None)
def load_schema(schema_name: str) -> Dict[str, Any]:
    """Loads and caches a bundled JSON schema."""
    with open(get_schema_path(schema_name), 'r', encoding='utf-8') as f:
        return json.load(f)


def validate_against_schema(
    data: Any,
    schema_name: str
) -> Tuple[bool, List[str]]:
    """Validates data against a bundled schema.

    Args:
        data: Parsed JSON document.
        schema_name: Schema file name.

    Returns:
        A tuple of (is_valid, error_messages). Each message is prefixed
        with the dotted path of the offending value ("root" for the
        document itself).
    """
    schema = load_schema(schema_name)
    validator_class = validators.validator_for(schema)
    validator = validator_class(schema)

    errors = []
    for error in sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path]):
        path = '.'.join(str(p) for p in error.path) if error.path else 'root'
        errors.append(f"{path}: {error.message}")
    return len(errors) == 0, errors


def validate_export_document(data: Any) -> None:
    """Validates an import document against the export schema.

    Raises:
        SchemaValidationError: With every violation found.
    """
    is_valid, errors = validate_against_schema(data, EXPORT_SCHEMA)
    if not is_valid:
        raise SchemaValidationError(
            'Import file does not match the grantha export format',
            errors=errors,
        )
