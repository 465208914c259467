"""Import rows file readers.

This module loads rows from JSON array or JSONL files into mappings of
column name to string, the shape ImportStager validates.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from core.errors import ImportInputError


def read_import_rows(rows_path: Path) -> list[dict[str, str]]:
    """Load import rows from a local file.

    Args:
        rows_path: ``.jsonl`` file with one object per line, or a JSON file
            holding an array of objects.

    Returns:
        Rows in file order.

    Raises:
        ImportInputError: If the file is missing or malformed.
    """
    if not rows_path.is_file():
        raise ImportInputError(
            f"Failed to read import rows at {rows_path}: file does not exist."
        )
    if rows_path.suffix.lower() == ".jsonl":
        return _read_jsonl_rows(rows_path)
    return _read_json_rows(rows_path)


def _read_json_rows(rows_path: Path) -> list[dict[str, str]]:
    try:
        payload = json.loads(rows_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise ImportInputError(
            f"Failed to parse import rows at {rows_path}: {error.msg}."
        ) from error
    if not isinstance(payload, list):
        raise ImportInputError(
            f"Import rows at {rows_path} must be a JSON array of objects."
        )
    return [
        _row_from_payload(rows_path, position, item)
        for position, item in enumerate(payload, 1)
    ]


def _read_jsonl_rows(rows_path: Path) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for line_number, line in enumerate(rows_path.read_text(encoding="utf-8").splitlines(), 1):
        if not line.strip():
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as error:
            raise ImportInputError(
                f"Failed to parse import rows at {rows_path}:{line_number}: {error.msg}."
            ) from error
        rows.append(_row_from_payload(rows_path, line_number, payload))
    return rows


def _row_from_payload(rows_path: Path, position: int, payload: Any) -> dict[str, str]:
    """Coerce one row object into column name to string values."""
    if not isinstance(payload, dict):
        raise ImportInputError(
            f"Invalid import row at {rows_path}:{position}: expected JSON object."
        )
    return {
        str(name): "" if value is None else str(value)
        for name, value in payload.items()
    }
