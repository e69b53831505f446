"""
Translate JSON field lists into BigQuery schemas.

Schema descriptions use the same JSON shape as BigQuery table schemas,
either wrapped or as a bare array:

    {"fields": [{"name": "id", "type": "INTEGER", "mode": "REQUIRED"}]}

    [{"name": "id", "type": "INTEGER", "mode": "REQUIRED"},
     {"name": "tags", "type": "STRING", "mode": "REPEATED"},
     {"name": "owner", "type": "RECORD", "mode": "NULLABLE", "fields": [
         {"name": "email", "type": "STRING", "mode": "REQUIRED"}]}]

Type and mode tokens are case-sensitive uppercase. Every field must carry
a name, a type and a mode; anything else is rejected with SchemaParseError
rather than loaded with a guessed value.
"""

import json
from typing import Any

from google.cloud import bigquery


# Type token in a schema description -> type written into the load job.
# DATE, TIME and DATETIME are loaded as TIMESTAMP.
FIELD_TYPES = {
    "BOOLEAN": "BOOLEAN",
    "STRING": "STRING",
    "BYTES": "BYTES",
    "INTEGER": "INTEGER",
    "FLOAT": "FLOAT",
    "TIMESTAMP": "TIMESTAMP",
    "DATE": "TIMESTAMP",
    "TIME": "TIMESTAMP",
    "DATETIME": "TIMESTAMP",
    "RECORD": "RECORD",
}

FIELD_MODES = ("NULLABLE", "REQUIRED", "REPEATED")


class SchemaParseError(ValueError):
    """A schema description could not be translated into a BigQuery schema."""


def map_to_field(descriptor: Any, parent: str | None = None) -> bigquery.SchemaField:
    """
    Translate one field descriptor into a SchemaField.

    RECORD fields translate their nested "fields" list recursively and
    attach it as the SchemaField's sub-fields.

    Args:
        descriptor: Parsed JSON object for the field
        parent: Dotted path of the enclosing RECORD, for error messages

    Returns:
        The translated SchemaField

    Raises:
        SchemaParseError: If the descriptor is incomplete or uses an
            unknown type or mode
    """
    where = f"in '{parent}'" if parent else "at top level"
    if not isinstance(descriptor, dict):
        raise SchemaParseError(
            f"Schema field {where} must be a JSON object, got {type(descriptor).__name__}"
        )

    name = descriptor.get("name")
    if not isinstance(name, str) or not name.strip():
        raise SchemaParseError(f"Schema field {where} missing 'name'")
    path = f"{parent}.{name}" if parent else name

    type_token = descriptor.get("type")
    if type_token is None:
        raise SchemaParseError(f"Field '{path}' missing 'type'")

    mode = descriptor.get("mode")
    if mode is None:
        raise SchemaParseError(f"Field '{path}' missing 'mode'")
    if mode not in FIELD_MODES:
        raise SchemaParseError(
            f"Field '{path}' has invalid mode '{mode}'. Valid: {list(FIELD_MODES)}"
        )

    field_type = FIELD_TYPES.get(type_token) if isinstance(type_token, str) else None
    if field_type is None:
        raise SchemaParseError(
            f"Field '{path}' has unknown type '{type_token}'. Valid: {list(FIELD_TYPES)}"
        )

    if field_type == "RECORD":
        nested = descriptor.get("fields")
        if not nested:
            raise SchemaParseError(f"RECORD field '{path}' has no 'fields'")
        return bigquery.SchemaField(
            name, field_type, mode=mode, fields=list_to_fields(nested, parent=path)
        )

    if "fields" in descriptor:
        raise SchemaParseError(f"Field '{path}' of type {field_type} cannot have 'fields'")

    return bigquery.SchemaField(name, field_type, mode=mode)


def list_to_fields(descriptors: Any, parent: str | None = None) -> list[bigquery.SchemaField]:
    """
    Translate a list of field descriptors, preserving order.

    Field names must be unique within one level. BigQuery compares column
    names case-insensitively, so "Id" and "id" collide.
    """
    if not isinstance(descriptors, list):
        subject = f"Fields of '{parent}'" if parent else "Schema fields"
        raise SchemaParseError(
            f"{subject} must be a JSON array, got {type(descriptors).__name__}"
        )

    fields = []
    seen: set[str] = set()
    for descriptor in descriptors:
        schema_field = map_to_field(descriptor, parent=parent)
        key = schema_field.name.lower()
        if key in seen:
            path = f"{parent}.{schema_field.name}" if parent else schema_field.name
            raise SchemaParseError(f"Duplicate field name: '{path}'")
        seen.add(key)
        fields.append(schema_field)

    return fields


def schema_from_string(schema_str: str | None) -> list[bigquery.SchemaField] | None:
    """
    Translate a JSON schema description into a list of SchemaField.

    Returns None when no schema is configured. That is not the same as an
    empty list: without a schema the load job relies on the table's
    existing schema (or the Avro file's own), while an empty list is an
    explicit schema with no fields.

    Raises:
        SchemaParseError: If the text is not valid JSON or any field is invalid
    """
    if schema_str is None:
        return None

    try:
        parsed = json.loads(schema_str)
    except json.JSONDecodeError as e:
        raise SchemaParseError(f"Schema is not valid JSON: {e}") from e

    if isinstance(parsed, dict):
        if "fields" not in parsed:
            raise SchemaParseError("Schema object missing 'fields'")
        parsed = parsed["fields"]

    return list_to_fields(parsed)


def table_schema_from_string(schema_str: str | None) -> dict[str, Any] | None:
    """
    Translate a schema description into BigQuery's REST representation.

    The result is the {"fields": [...]} resource accepted by the tables and
    jobs APIs. Bare arrays are wrapped; every field is validated the same
    way as schema_from_string.
    """
    fields = schema_from_string(schema_str)
    if fields is None:
        return None
    return {"fields": [f.to_api_repr() for f in fields]}


def schema_to_json(fields: list[bigquery.SchemaField]) -> str:
    """Render translated fields back to a compact JSON array."""
    return json.dumps([f.to_api_repr() for f in fields], separators=(",", ":"))
