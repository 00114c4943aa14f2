"""I/O utilities for JSON and JSONL token streams and reports, on orjson."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson

from symbridge.errors import StructuralError
from symbridge.types import TokenRecord, token_record_from_dict


def load_json(path: Path) -> Any:
    return orjson.loads(path.read_bytes())


def save_json(obj: Any, path: Path, *, pretty: bool = True) -> None:
    """Save an object as JSON with sorted keys."""
    path.parent.mkdir(parents=True, exist_ok=True)
    opts = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS if pretty else orjson.OPT_SORT_KEYS
    path.write_bytes(orjson.dumps(obj, option=opts | orjson.OPT_NON_STR_KEYS))


def load_jsonl(path: Path) -> list[dict[str, Any]]:
    """Load a JSON Lines file (one JSON object per line). Blank lines skipped."""
    records: list[dict[str, Any]] = []
    for line in path.read_bytes().split(b"\n"):
        line = line.strip()
        if line:
            records.append(orjson.loads(line))
    return records


def save_jsonl(records: list[dict[str, Any]], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [orjson.dumps(r, option=orjson.OPT_SORT_KEYS) for r in records]
    path.write_bytes(b"\n".join(lines) + b"\n")


def load_token_records(path: Path) -> list[TokenRecord]:
    """Read an upstream token stream, one record per JSONL line, in stream order."""
    records: list[TokenRecord] = []
    for idx, row in enumerate(load_jsonl(path), start=1):
        try:
            records.append(token_record_from_dict(row))
        except (TypeError, ValueError) as exc:
            raise StructuralError("invalid_record", f"{path} line {idx}: {exc}") from exc
    return records
