from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

import pandas as pd


SAMPLE_ROWS = 5
TYPE_PROBE_ROWS = 20

# 2024-01-31, 1/31/2024, 31-01-24 ...
DATE_PATTERN = r"^\d{1,4}[-/]\d{1,2}[-/]\d{1,4}$"
NUMERIC_NOISE = r"[,$]"


def _as_text(series: pd.Series) -> pd.Series:
    return series.fillna("").astype(str).str.strip()


def infer_column_type(values: pd.Series) -> str:
    """Classify a column from its first rows: date, then number, else text."""
    probe = _as_text(values.head(TYPE_PROBE_ROWS))
    probe = probe[probe != ""]
    if probe.empty:
        return "text"
    if probe.str.match(DATE_PATTERN).all():
        return "date"
    numeric = pd.to_numeric(probe.str.replace(NUMERIC_NOISE, "", regex=True), errors="coerce")
    if numeric.notna().all():
        return "number"
    return "text"


def sample_values(values: pd.Series, limit: int = SAMPLE_ROWS) -> List[str]:
    head = _as_text(values.head(limit))
    return [v for v in head.tolist() if v]


def profile_frame(df: pd.DataFrame) -> Tuple[Dict[str, str], Dict[str, List[str]]]:
    column_types: Dict[str, str] = {}
    samples: Dict[str, List[str]] = {}
    for col in df.columns:
        column_types[str(col)] = infer_column_type(df[col])
        samples[str(col)] = sample_values(df[col])
    return column_types, samples


def profile_rows(
    columns: Sequence[str], rows: Sequence[Dict[str, Any]]
) -> Tuple[Dict[str, str], Dict[str, List[str]]]:
    """Column types + sample values for rows that arrived as JSON objects."""
    df = pd.DataFrame(list(rows), columns=list(columns))
    return profile_frame(df)


def read_csv_rows(path: Path) -> Tuple[List[str], List[Dict[str, str]]]:
    """Read a CSV as strings (BOM stripped, cells trimmed, blank lines skipped)."""
    df = pd.read_csv(
        path,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        encoding="utf-8-sig",
    )
    df.columns = [str(c).strip() for c in df.columns]
    df = df.apply(lambda s: s.str.strip())
    return list(df.columns), df.to_dict(orient="records")
