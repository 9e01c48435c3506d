from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable, List

from ..models.types import FileSchema, UploadedFile


@dataclass
class SchemaSnapshot:
    schemas: List[FileSchema]
    file_ids: List[str]


def build_schema_snapshot(files: Iterable[UploadedFile]) -> SchemaSnapshot:
    """
    Project the caller's visible files (owned + demo) into agent-facing schemas.
    Built fresh per question; never persisted.
    """
    schemas = [FileSchema.from_file(f) for f in files]
    return SchemaSnapshot(schemas=schemas, file_ids=[s.file_id for s in schemas])


def describe_for_schema_agent(schemas: Iterable[FileSchema]) -> str:
    return "\n\n".join(
        "\n".join(
            [
                f"FILE: {s.file_name}",
                f"COLUMNS: {', '.join(s.columns)}",
                f"TYPES: {json.dumps(s.column_types)}",
                f"SAMPLE VALUES: {json.dumps(s.sample_values)}",
                f"ROWS: {s.row_count}",
            ]
        )
        for s in schemas
    )


def describe_for_sql_agent(schemas: Iterable[FileSchema]) -> str:
    lines: List[str] = []
    for s in schemas:
        typed = ", ".join(f"{c} ({s.column_types.get(c, 'text')})" for c in s.columns)
        lines.append(f"FILE: {s.file_name} (file_id = '{s.file_id}')")
        lines.append(f"COLUMNS: {typed}")
        lines.append(f"SAMPLE VALUES: {json.dumps(s.sample_values)}")
        lines.append("")
    return "\n".join(lines).strip()
