from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


ColumnType = Literal["number", "text", "date"]
MatchType = Literal["exact", "fuzzy", "case_insensitive"]
Aggregation = Literal["AVG", "SUM", "COUNT", "MAX", "MIN"]
ValidationStatus = Literal["pass", "retry", "fail"]
ChartType = Literal["bar", "line", "pie", "scatter", "heatmap"]

AgentName = Literal["schema", "sql", "validator"]
AgentStatus = Literal["active", "done", "retry", "error"]
AgentEventType = Literal[
    "agent_start",
    "agent_progress",
    "agent_complete",
    "round_retry",
    "query_complete",
    "query_error",
]

MATCH_TYPES = ("exact", "fuzzy", "case_insensitive")
AGGREGATIONS = ("AVG", "SUM", "COUNT", "MAX", "MIN")
CHART_TYPES = ("bar", "line", "pie", "scatter", "heatmap")


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire (and in agent JSON)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# FILES
# =============================================================================


class UploadedFile(CamelModel):
    id: str
    user_id: str
    file_name: str
    columns: List[str]
    column_types: Dict[str, str] = Field(default_factory=dict)
    sample_values: Dict[str, List[str]] = Field(default_factory=dict)
    row_count: int = 0
    is_demo: bool = False
    created_at: Optional[datetime] = None


class FileSchema(CamelModel):
    """Agent-facing projection of an UploadedFile."""

    file_id: str
    file_name: str
    columns: List[str]
    column_types: Dict[str, str] = Field(default_factory=dict)
    sample_values: Dict[str, List[str]] = Field(default_factory=dict)
    row_count: int = 0

    @classmethod
    def from_file(cls, f: UploadedFile) -> "FileSchema":
        return cls(
            file_id=f.id,
            file_name=f.file_name,
            columns=list(f.columns),
            column_types=dict(f.column_types or {}),
            sample_values=dict(f.sample_values or {}),
            row_count=f.row_count or 0,
        )


# =============================================================================
# SCHEMA ANALYSIS
# =============================================================================


class JoinSide(CamelModel):
    column: str
    file: str


class JoinKey(CamelModel):
    file_a: JoinSide
    file_b: JoinSide
    confidence: float = 0.0
    match_type: MatchType = "fuzzy"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> float:
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, min(1.0, value))

    @field_validator("match_type", mode="before")
    @classmethod
    def _coerce_match_type(cls, v: Any) -> str:
        value = str(v or "").strip().lower().replace("-", "_").replace(" ", "_")
        return value if value in MATCH_TYPES else "fuzzy"


class MetricSpec(CamelModel):
    column: str
    file: str = ""
    aggregation: Aggregation

    @field_validator("aggregation", mode="before")
    @classmethod
    def _upper_aggregation(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v


class SchemaAnalysis(CamelModel):
    join_key: Optional[JoinKey] = None
    metrics: List[MetricSpec] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    single_file_query: bool = False


# =============================================================================
# VALIDATION / RESULTS
# =============================================================================


class ValidationResult(CamelModel):
    status: ValidationStatus
    diagnosis: str
    row_count: int
    null_percentage: float


class ChartSeries(CamelModel):
    name: str
    values: List[float]


class ChartConfig(CamelModel):
    type: ChartType
    title: str
    x_column: str
    y_columns: List[str]
    x_values: List[str]
    series: List[ChartSeries]


class QueryResult(CamelModel):
    columns: List[str] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    sql: str = ""
    rounds: int = 0
    timing: int = 0
    summary: Optional[str] = None
    chart: Optional[ChartConfig] = None
    error: Optional[str] = None


class ConversationContext(CamelModel):
    previous_question: str
    previous_sql: str
    previous_summary: Optional[str] = None

    @classmethod
    def from_result(cls, question: str, result: QueryResult) -> "ConversationContext":
        return cls(
            previous_question=question,
            previous_sql=result.sql,
            previous_summary=result.summary,
        )


class AgentEvent(CamelModel):
    type: AgentEventType
    agent: Optional[AgentName] = None
    status: Optional[AgentStatus] = None
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


# =============================================================================
# API
# =============================================================================


class QueryRequest(CamelModel):
    question: str = ""
    context: Optional[ConversationContext] = None


class UploadRequest(CamelModel):
    file_name: str
    columns: List[str]
    column_types: Optional[Dict[str, str]] = None
    sample_values: Optional[Dict[str, List[str]]] = None
    rows: List[Dict[str, Any]]


class UploadResponse(CamelModel):
    id: str
    file_name: str
    columns: List[str]
    row_count: int


class FileInfo(CamelModel):
    id: str
    file_name: str
    columns: List[str]
    column_types: Dict[str, str]
    row_count: int
    is_demo: bool


class FilePreview(FileInfo):
    rows: List[Dict[str, Any]]


class SuggestedQuery(CamelModel):
    text: str
    type: Literal["single", "cross"]
