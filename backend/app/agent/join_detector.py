"""Join detection and column categorization across uploaded files.

Compares column names between every pair of files to propose join keys, and
tags each column with an analytical category used by the schema agent prompt
and the suggestion engine.

COLUMN CATEGORIES:
- id         - primary/foreign keys (EmpID, Employee ID, Applicant ID)
- metric     - numeric values you aggregate (Salary, Cost, Score, Duration)
- dimension  - categories you group by (Department, Type, Gender, Status)
- date       - temporal columns (StartDate, Survey Date, Application Date)
- identifier - names/contact info, noise for analytics (FirstName, Email, Phone)
- other      - anything else

JOIN RANKING (strongest first):
1. exact            - identical column names
2. case_insensitive - identical after lowercasing and dropping separators
3. fuzzy            - ID roots contain one another (EmpID ~ Employee ID)
4. possible         - isolated file linked to any file with an ID column
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from rapidfuzz import fuzz

from ..models.types import FileSchema


class ColumnCategory(Enum):
    ID = "id"
    METRIC = "metric"
    DIMENSION = "dimension"
    DATE = "date"
    IDENTIFIER = "identifier"
    OTHER = "other"


# ============================================================================
# KEYWORD DATA
# ============================================================================

METRIC_KEYWORDS: Tuple[str, ...] = (
    "salary", "cost", "price", "amount", "revenue", "fee",
    "score", "rating", "duration", "budget", "hours",
    "experience", "rate", "income", "profit", "balance",
    "total", "size", "weight", "height", "volume",
    "percentage", "ratio", "wage", "bonus", "commission",
)

DIMENSION_KEYWORDS: Tuple[str, ...] = (
    "department", "type", "category", "status", "outcome",
    "level", "group", "class", "tier", "zone", "region",
    "location", "city", "state", "country", "gender",
    "title", "role", "position", "program", "trainer",
    "supervisor", "education", "marital", "mode", "method",
    "source", "channel", "division", "unit", "team",
    "shift", "grade", "race", "ethnicity",
)

# Checked before metrics so "Phone Number" is not a metric
IDENTIFIER_KEYWORDS: Tuple[str, ...] = (
    "name", "first", "last", "email", "phone", "address",
    "zip", "description", "comment", "note", "url", "link",
    "bio", "image", "photo", "avatar", "password", "token",
    "ssn", "social",
)

DATE_KEYWORDS: Tuple[str, ...] = ("date", "timestamp")
DATE_WORD_REGEX = re.compile(r"\b(month|year|quarter|week)\b", re.IGNORECASE)
ID_WORD_REGEX = re.compile(r"\bid\b", re.IGNORECASE)

RELEVANCE_ORDER: Dict[ColumnCategory, int] = {
    ColumnCategory.ID: 0,
    ColumnCategory.METRIC: 1,
    ColumnCategory.DIMENSION: 2,
    ColumnCategory.DATE: 3,
    ColumnCategory.OTHER: 4,
    ColumnCategory.IDENTIFIER: 5,
}

# Confidence tiers; fuzzy scores live strictly between POSSIBLE and CASE_INSENSITIVE.
CONFIDENCE_EXACT = 1.0
CONFIDENCE_CASE_INSENSITIVE = 0.9
CONFIDENCE_FUZZY_FLOOR = 0.5
CONFIDENCE_FUZZY_CEILING = 0.85
CONFIDENCE_POSSIBLE = 0.3
SAMPLE_OVERLAP_BONUS = 0.1


@dataclass
class CategorizedColumn:
    name: str
    category: ColumnCategory


@dataclass
class FileColumns:
    id: str
    file_name: str
    columns: List[str]
    sample_values: Optional[Dict[str, List[str]]] = None

    @classmethod
    def from_schema(cls, schema: FileSchema) -> "FileColumns":
        return cls(
            id=schema.file_id,
            file_name=schema.file_name,
            columns=list(schema.columns),
            sample_values=dict(schema.sample_values),
        )


@dataclass
class JoinEnd:
    id: str
    file_name: str
    column: str


@dataclass
class DetectedJoin:
    file_a: JoinEnd
    file_b: JoinEnd
    join_type: str  # exact_id | fuzzy_id | possible_id
    match_type: str  # exact | case_insensitive | fuzzy
    confidence: float
    label: str

    def as_dict(self) -> Dict[str, object]:
        return {
            "fileA": {"id": self.file_a.id, "fileName": self.file_a.file_name, "column": self.file_a.column},
            "fileB": {"id": self.file_b.id, "fileName": self.file_b.file_name, "column": self.file_b.column},
            "joinType": self.join_type,
            "matchType": self.match_type,
            "confidence": round(self.confidence, 3),
            "label": self.label,
        }


# ============================================================================
# CATEGORIZATION
# ============================================================================


def normalize(col: str) -> str:
    """Lowercase and strip separators: 'Employee ID' -> 'employeeid'."""
    return re.sub(r"[\s_\-()]", "", col.lower())


def categorize_column(col: str) -> ColumnCategory:
    norm = normalize(col)

    if norm.endswith("id") or ID_WORD_REGEX.search(col):
        return ColumnCategory.ID

    if any(kw in norm for kw in IDENTIFIER_KEYWORDS):
        return ColumnCategory.IDENTIFIER

    if any(kw in norm for kw in DATE_KEYWORDS) or DATE_WORD_REGEX.search(col):
        return ColumnCategory.DATE

    if any(kw in norm for kw in METRIC_KEYWORDS):
        return ColumnCategory.METRIC

    if any(kw in norm for kw in DIMENSION_KEYWORDS):
        return ColumnCategory.DIMENSION

    return ColumnCategory.OTHER


def categorize_columns(columns: Iterable[str]) -> List[CategorizedColumn]:
    return [CategorizedColumn(name=c, category=categorize_column(c)) for c in columns]


def sort_columns_by_relevance(columns: Sequence[CategorizedColumn]) -> List[CategorizedColumn]:
    """id -> metric -> dimension -> date -> other -> identifier (stable)."""
    return sorted(columns, key=lambda c: RELEVANCE_ORDER[c.category])


# ============================================================================
# JOIN DETECTION
# ============================================================================


def _id_columns(file: FileColumns) -> List[str]:
    return [c for c in file.columns if categorize_column(c) == ColumnCategory.ID]


def _id_root(norm: str) -> str:
    return norm[:-2] if norm.endswith("id") else norm


def _sample_overlap(a: FileColumns, col_a: str, b: FileColumns, col_b: str) -> float:
    samples_a = {v.strip().lower() for v in (a.sample_values or {}).get(col_a, []) if v}
    samples_b = {v.strip().lower() for v in (b.sample_values or {}).get(col_b, []) if v}
    if not samples_a or not samples_b:
        return 0.0
    return len(samples_a & samples_b) / min(len(samples_a), len(samples_b))


def match_columns(col_a: str, col_b: str) -> Optional[Tuple[str, float]]:
    """
    Compare two ID column names.
    Returns (match_type, base_confidence) or None when unrelated.
    """
    if col_a == col_b:
        return "exact", CONFIDENCE_EXACT

    norm_a, norm_b = normalize(col_a), normalize(col_b)
    if norm_a == norm_b:
        return "case_insensitive", CONFIDENCE_CASE_INSENSITIVE

    # "employeeid" -> "employee", "empid" -> "emp"; "employee" contains "emp"
    root_a, root_b = _id_root(norm_a), _id_root(norm_b)
    if len(root_a) > 1 and len(root_b) > 1 and (root_a in root_b or root_b in root_a):
        similarity = fuzz.ratio(root_a, root_b) / 100.0
        span = CONFIDENCE_FUZZY_CEILING - CONFIDENCE_FUZZY_FLOOR - SAMPLE_OVERLAP_BONUS
        return "fuzzy", CONFIDENCE_FUZZY_FLOOR + span * similarity

    return None


def _best_pair(a: FileColumns, b: FileColumns) -> Optional[Tuple[str, str, str, float]]:
    best: Optional[Tuple[str, str, str, float]] = None
    for col_a in _id_columns(a):
        for col_b in _id_columns(b):
            matched = match_columns(col_a, col_b)
            if matched is None:
                continue
            match_type, confidence = matched
            if match_type == "fuzzy":
                confidence += SAMPLE_OVERLAP_BONUS * _sample_overlap(a, col_a, b, col_b)
            if best is None or confidence > best[3]:
                best = (col_a, col_b, match_type, confidence)
    return best


def detect_joins(files: Sequence[FileColumns]) -> List[DetectedJoin]:
    """Detect joins between all file pairs, then link isolated files with ID columns."""
    joins: List[DetectedJoin] = []

    for i in range(len(files)):
        for j in range(i + 1, len(files)):
            a, b = files[i], files[j]
            best = _best_pair(a, b)
            if best is None:
                continue
            col_a, col_b, match_type, confidence = best
            label = col_a if len(col_a) >= len(col_b) else col_b
            joins.append(
                DetectedJoin(
                    file_a=JoinEnd(id=a.id, file_name=a.file_name, column=col_a),
                    file_b=JoinEnd(id=b.id, file_name=b.file_name, column=col_b),
                    join_type="fuzzy_id" if match_type == "fuzzy" else "exact_id",
                    match_type=match_type,
                    confidence=round(confidence, 4),
                    label=f"via {label}",
                )
            )

    connected: Set[str] = set()
    for join in joins:
        connected.add(join.file_a.id)
        connected.add(join.file_b.id)

    for file in files:
        if file.id in connected:
            continue
        own_ids = _id_columns(file)
        if not own_ids:
            continue

        candidates = [f for f in files if f.id != file.id and _id_columns(f)]
        target = next((f for f in candidates if f.id in connected), None) or (candidates[0] if candidates else None)
        if target is None:
            continue

        target_col = _id_columns(target)[0]
        joins.append(
            DetectedJoin(
                file_a=JoinEnd(id=file.id, file_name=file.file_name, column=own_ids[0]),
                file_b=JoinEnd(id=target.id, file_name=target.file_name, column=target_col),
                join_type="possible_id",
                match_type="fuzzy",
                confidence=CONFIDENCE_POSSIBLE,
                label=f"{own_ids[0]} ↔ {target_col}",
            )
        )
        connected.add(file.id)

    return joins


def detect_schema_joins(schemas: Sequence[FileSchema]) -> List[DetectedJoin]:
    return detect_joins([FileColumns.from_schema(s) for s in schemas])


def describe_joins(joins: Sequence[DetectedJoin]) -> str:
    if not joins:
        return "none detected"
    return "\n".join(
        f"- {j.file_a.file_name}.{j.file_a.column} ↔ {j.file_b.file_name}.{j.file_b.column} "
        f"({j.match_type}, confidence {j.confidence:.2f})"
        for j in joins
    )
