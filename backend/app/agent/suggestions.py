"""Suggested questions built from the selected files and their detected joins.

Cross-file suggestions come first, then single-file ones fill the remaining
slots. A column is only treated as a metric when its inferred type is numeric;
metric-sounding text columns are demoted to dimensions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from ..models.types import FileSchema, SuggestedQuery
from .join_detector import ColumnCategory, DetectedJoin, categorize_column


MAX_SUGGESTIONS = 5
MAX_CROSS_SUGGESTIONS = 3


@dataclass
class FileAnalysis:
    id: str
    file_name: str
    short_name: str
    metrics: List[str] = field(default_factory=list)
    dimensions: List[str] = field(default_factory=list)
    dates: List[str] = field(default_factory=list)
    ids: List[str] = field(default_factory=list)


def short_name(file_name: str) -> str:
    """'training_and_development_data.csv' -> 'training'"""
    stem = re.sub(r"\.csv$", "", file_name, flags=re.IGNORECASE)
    return re.split(r"[_\-\s]", stem)[0].lower()


def analyze_file(schema: FileSchema) -> FileAnalysis:
    analysis = FileAnalysis(id=schema.file_id, file_name=schema.file_name, short_name=short_name(schema.file_name))
    for col in schema.columns:
        category = categorize_column(col)
        if category == ColumnCategory.METRIC:
            if schema.column_types.get(col) == "number":
                analysis.metrics.append(col)
            else:
                analysis.dimensions.append(col)
        elif category == ColumnCategory.DIMENSION:
            analysis.dimensions.append(col)
        elif category == ColumnCategory.DATE:
            analysis.dates.append(col)
        elif category == ColumnCategory.ID:
            analysis.ids.append(col)
    return analysis


def _pick_unused(candidates: Sequence[str], used: Set[str]) -> Optional[str]:
    return next((c for c in candidates if c not in used), None)


def _cross_file(a: FileAnalysis, b: FileAnalysis, used: Set[str]) -> List[SuggestedQuery]:
    out: List[SuggestedQuery] = []

    if a.metrics and b.dimensions:
        metric, dim = _pick_unused(a.metrics, used), _pick_unused(b.dimensions, used)
        if metric and dim:
            out.append(SuggestedQuery(text=f"Compare average {metric} by {dim}", type="cross"))
            used.update({metric, dim})

    if b.metrics and a.dimensions:
        metric, dim = _pick_unused(b.metrics, used), _pick_unused(a.dimensions, used)
        if metric and dim:
            out.append(SuggestedQuery(text=f"Show average {metric} by {dim}", type="cross"))
            used.update({metric, dim})

    if a.metrics and b.dates:
        metric = _pick_unused(a.metrics, used)
        if metric:
            dim = _pick_unused(b.dimensions, used) or _pick_unused(a.dimensions, used)
            if dim:
                out.append(SuggestedQuery(text=f"Show {metric} trend over time by {dim}", type="cross"))
                used.update({metric, dim})

    return out


def _single_file(analysis: FileAnalysis, used: Set[str], room: int) -> List[SuggestedQuery]:
    out: List[SuggestedQuery] = []

    if analysis.metrics and analysis.dimensions:
        metric, dim = _pick_unused(analysis.metrics, used), _pick_unused(analysis.dimensions, used)
        if metric and dim:
            out.append(SuggestedQuery(text=f"What is the average {metric} by {dim}?", type="single"))
            used.update({metric, dim})

    if analysis.metrics and analysis.dates:
        metric = _pick_unused(analysis.metrics, used)
        if metric:
            out.append(SuggestedQuery(text=f"Show {metric} trend over time", type="single"))
            used.add(metric)

    if analysis.dimensions and len(out) < room:
        dim = _pick_unused(analysis.dimensions, used)
        if dim:
            out.append(SuggestedQuery(text=f"What is the {dim} distribution?", type="single"))
            used.add(dim)

    if len(analysis.metrics) >= 2 and len(out) < room:
        m1 = _pick_unused(analysis.metrics, used)
        m2 = _pick_unused(analysis.metrics, used | ({m1} if m1 else set()))
        if m1 and m2:
            out.append(SuggestedQuery(text=f"Show {m1} vs {m2}", type="single"))
            used.update({m1, m2})

    return out


def generate_suggestions(files: Sequence[FileSchema], joins: Sequence[DetectedJoin]) -> List[SuggestedQuery]:
    if not files:
        return []

    analyses: Dict[str, FileAnalysis] = {f.file_id: analyze_file(f) for f in files}
    used: Set[str] = set()
    suggestions: List[SuggestedQuery] = []

    if joins and len(analyses) >= 2:
        for join in joins:
            if len(suggestions) >= MAX_CROSS_SUGGESTIONS:
                break
            a, b = analyses.get(join.file_a.id), analyses.get(join.file_b.id)
            if a is None or b is None:
                continue
            suggestions.extend(_cross_file(a, b, used))

    for analysis in analyses.values():
        if len(suggestions) >= MAX_SUGGESTIONS:
            break
        suggestions.extend(_single_file(analysis, used, MAX_SUGGESTIONS - len(suggestions)))

    seen: Set[str] = set()
    unique: List[SuggestedQuery] = []
    for s in suggestions:
        key = s.text.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(s)
    return unique[:MAX_SUGGESTIONS]
