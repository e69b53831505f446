#!/usr/bin/env python3
"""Validate BigQuery table schema files.

Checks that each JSON schema file translates cleanly into a BigQuery
schema: valid JSON, every field with a name, a known type and a mode,
RECORD fields with sub-fields, and no duplicate names.

Usage:
    python scripts/validate_schema.py                       # Validate schemas/*.json
    python scripts/validate_schema.py --schemas-dir conf    # Validate another directory
    python scripts/validate_schema.py events.json           # Validate specific files
"""

import argparse
import sys
from pathlib import Path

from bqbatch.schema import SchemaParseError, schema_from_string


def count_fields(fields) -> int:
    """Count fields including nested RECORD sub-fields."""
    return sum(1 + count_fields(f.fields) for f in fields)


def validate_schema_file(path: Path) -> tuple[list[str], int]:
    """Validate a single schema file.

    Args:
        path: Path to the JSON file

    Returns:
        Tuple of (error messages, number of fields); errors are empty if valid
    """
    try:
        text = path.read_text()
    except OSError as e:
        return [f"Failed to read file: {e}"], 0

    if not text.strip():
        return ["File is empty"], 0

    try:
        fields = schema_from_string(text)
    except SchemaParseError as e:
        return [str(e)], 0

    if not fields:
        return ["Schema has no fields"], 0

    return [], count_fields(fields)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate BigQuery table schema files")
    parser.add_argument(
        "files",
        nargs="*",
        help="Schema files to validate (default: every *.json in --schemas-dir)"
    )
    parser.add_argument(
        "--schemas-dir",
        default="schemas",
        help="Directory containing schema files (default: schemas)"
    )
    args = parser.parse_args(argv)

    if args.files:
        schema_files = [Path(f) for f in args.files]
    else:
        schemas_dir = Path(args.schemas_dir)
        if not schemas_dir.exists():
            print(f"❌ Schemas directory not found: {schemas_dir}")
            return 1
        schema_files = sorted(schemas_dir.rglob("*.json"))

    if not schema_files:
        print("❌ No schema files found")
        return 1

    print(f"Validating {len(schema_files)} schema file(s)...\n")

    all_valid = True
    for schema_path in schema_files:
        errors, field_count = validate_schema_file(schema_path)

        if errors:
            all_valid = False
            print(f"❌ {schema_path}")
            for error in errors:
                print(f"   - {error}")
        else:
            print(f"✓ {schema_path} ({field_count} fields)")

    print()
    if all_valid:
        print("✓ All schemas are valid")
        return 0

    print("❌ Some schemas have errors")
    return 1


if __name__ == "__main__":
    sys.exit(main())
