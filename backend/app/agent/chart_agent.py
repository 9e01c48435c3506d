"""Chart selection for a finished query result.

Tier 1 is deterministic: keyword and result-shape rules pick the chart type and
the axes are mapped locally, with no model call. Only when no rule fires is the
model asked for {chartType, xColumn, yColumns, title}; its answer is constrained
to CHART_TYPES and to the actual result columns.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from ..llm.cleaning import parse_json_object
from ..llm.client import TextCompletion
from ..models.types import CHART_TYPES, ChartConfig, ChartSeries
from .prompts import chart_prompt


logger = logging.getLogger(__name__)

PIE_MAX_ROWS = 10
NUMERIC_PROBE = 5
NUMERIC_SHARE = 0.8
EMPTY_MARKERS = (None, "", "—")
TITLE_MAX = 50

# Ordered (chart type, question pattern, max rows or None)
QUESTION_RULES = [
    ("pie", re.compile(r"\b(percentage|percent|breakdown|distribution|proportion|share|pie)\b"), PIE_MAX_ROWS),
    (
        "line",
        re.compile(r"\b(trend|over time|timeline|by (date|month|year|week|day)|monthly|yearly|daily)\b"),
        None,
    ),
    ("heatmap", re.compile(r"\b(heatmap|heat map)\b"), None),
    ("scatter", re.compile(r"\b(scatter|correlation|relationship)\b|\bvs\.?(\s|$)"), None),
]

PIE_COLUMN_REGEX = re.compile(r"percent|share|proportion")
TIME_COLUMN_REGEX = re.compile(r"date|month|year|period|time")


def detect_chart_type(question: str, columns: Sequence[str], row_count: int) -> Optional[str]:
    q = question.lower()
    for chart_type, pattern, max_rows in QUESTION_RULES:
        if max_rows is not None and row_count > max_rows:
            continue
        if pattern.search(q):
            return chart_type

    cols = [c.lower() for c in columns]
    if row_count <= PIE_MAX_ROWS and any(PIE_COLUMN_REGEX.search(c) for c in cols):
        return "pie"
    if row_count > 5 and any(TIME_COLUMN_REGEX.search(c) for c in cols):
        return "line"
    return None


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def find_numeric_columns(columns: Sequence[str], rows: Sequence[Dict[str, Any]]) -> List[str]:
    """Columns whose first non-empty values are (mostly) numeric."""
    numeric: List[str] = []
    for col in columns:
        checked = 0
        hits = 0
        for row in rows:
            value = row.get(col)
            if value in EMPTY_MARKERS:
                continue
            checked += 1
            if _to_number(value) is not None:
                hits += 1
            if checked >= NUMERIC_PROBE:
                break
        if checked and hits / checked >= NUMERIC_SHARE:
            numeric.append(col)
    return numeric


def find_categorical_column(
    columns: Sequence[str], rows: Sequence[Dict[str, Any]], numeric_columns: Sequence[str]
) -> Optional[str]:
    for col in columns:
        if col in numeric_columns:
            continue
        if any(row.get(col) not in EMPTY_MARKERS for row in rows):
            return col
    return None


def has_valid_data(rows: Sequence[Dict[str, Any]], y_columns: Sequence[str]) -> bool:
    """False when every y value is null, empty or zero."""
    for col in y_columns:
        for row in rows:
            value = row.get(col)
            if value in EMPTY_MARKERS:
                continue
            number = _to_number(value)
            if number is None or number != 0:
                return True
    return False


def _title(question: str) -> str:
    return question if len(question) <= TITLE_MAX else question[: TITLE_MAX - 3] + "..."


def build_chart(
    chart_type: str,
    title: str,
    x_column: str,
    y_columns: Sequence[str],
    rows: Sequence[Dict[str, Any]],
) -> Optional[ChartConfig]:
    if not y_columns or not has_valid_data(rows, y_columns):
        return None
    x_values = ["" if row.get(x_column) is None else str(row.get(x_column)) for row in rows]
    series = [
        ChartSeries(name=col, values=[_to_number(row.get(col)) or 0.0 for row in rows])
        for col in y_columns
    ]
    return ChartConfig(
        type=chart_type,
        title=title or "Query Results",
        x_column=x_column,
        y_columns=list(y_columns),
        x_values=x_values,
        series=series,
    )


def deterministic_chart(
    chart_type: str,
    question: str,
    columns: Sequence[str],
    rows: Sequence[Dict[str, Any]],
    numeric_columns: Sequence[str],
) -> Optional[ChartConfig]:
    """Axis mapping without a model call."""
    if chart_type == "scatter" and len(numeric_columns) >= 2:
        x_column = numeric_columns[0]
        y_columns = [numeric_columns[1]]
    else:
        x_column = find_categorical_column(columns, rows, numeric_columns) or columns[0]
        y_columns = [c for c in numeric_columns if c != x_column]
        if chart_type == "pie":
            y_columns = y_columns[-1:]
    return build_chart(chart_type, _title(question), x_column, y_columns, rows)


async def run_chart_agent(
    llm: TextCompletion,
    question: str,
    columns: Sequence[str],
    rows: Sequence[Dict[str, Any]],
) -> Optional[ChartConfig]:
    if not rows or len(columns) < 2:
        return None

    numeric_columns = find_numeric_columns(columns, rows)
    detected = detect_chart_type(question, columns, len(rows))
    if detected is not None:
        return deterministic_chart(detected, question, columns, rows, numeric_columns)

    raw = await llm.complete(chart_prompt(question, columns, rows, numeric_columns), agent="chart")
    parsed = parse_json_object(raw)
    if parsed is None:
        logger.info("Chart Agent output unparseable; using bar fallback")
        return deterministic_chart("bar", question, columns, rows, numeric_columns)

    chart_type = parsed.get("chartType")
    if chart_type not in CHART_TYPES:
        chart_type = "bar"

    categorical = find_categorical_column(columns, rows, numeric_columns)
    x_column = parsed.get("xColumn")
    if x_column not in columns:
        x_column = categorical or columns[0]

    raw_y = parsed.get("yColumns")
    if isinstance(raw_y, str):
        raw_y = [raw_y]
    y_columns = [c for c in (raw_y or []) if isinstance(c, str) and c in columns]
    if not y_columns:
        fallback_y = next((c for c in numeric_columns if c != x_column), None)
        if fallback_y is None:
            return None
        y_columns = [fallback_y]

    title = parsed.get("title") if isinstance(parsed.get("title"), str) else ""
    return build_chart(chart_type, title, x_column, y_columns, rows)
