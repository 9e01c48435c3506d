from __future__ import annotations

from typing import Any, Dict, Sequence

from ..models.types import ValidationResult


# Fixed heuristics, not configuration.
NULL_RETRY_THRESHOLD = 50.0
MIN_COLUMNS = 2

ZERO_ROWS_DIAGNOSIS = (
    "Query returned 0 rows. Likely cause: case mismatch in JOIN key or wrong column name. "
    "Try LOWER() on join columns."
)
MISSING_METRIC_DIAGNOSIS = (
    "Only 1 column returned. The query is missing the metric column. "
    "Add the aggregation (AVG, SUM, COUNT) for the requested metric."
)


def _is_null(value: Any) -> bool:
    return value is None or value == ""


def null_percentage(rows: Sequence[Dict[str, Any]], columns: Sequence[str]) -> float:
    total = 0
    nulls = 0
    for row in rows:
        for col in columns:
            total += 1
            if _is_null(row.get(col)):
                nulls += 1
    return (nulls / total) * 100 if total else 0.0


def run_validator(rows: Sequence[Dict[str, Any]], columns: Sequence[str]) -> ValidationResult:
    """Deterministic result-shape checks; first match wins. No AI calls."""
    row_count = len(rows)

    if row_count == 0:
        return ValidationResult(status="retry", diagnosis=ZERO_ROWS_DIAGNOSIS, row_count=0, null_percentage=100.0)

    pct = null_percentage(rows, columns)
    if pct > NULL_RETRY_THRESHOLD:
        return ValidationResult(
            status="retry",
            diagnosis=(
                f"{pct:.0f}% NULL values detected. JOIN key is likely not matching correctly. "
                "Check column name spelling and case sensitivity."
            ),
            row_count=row_count,
            null_percentage=pct,
        )

    if len(columns) < MIN_COLUMNS and row_count > 1:
        return ValidationResult(
            status="retry", diagnosis=MISSING_METRIC_DIAGNOSIS, row_count=row_count, null_percentage=pct
        )

    return ValidationResult(
        status="pass",
        diagnosis=f"{row_count} rows, {pct:.0f}% nulls — looks good",
        row_count=row_count,
        null_percentage=pct,
    )
