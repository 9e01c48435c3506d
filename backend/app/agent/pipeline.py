"""Multi-agent query pipeline.

One run takes a question plus the visible file schemas through up to
MAX_ROUNDS rounds of:

    Schema Agent -> SQL Agent -> safety gate + execution -> Result Validator

A round ends in exactly one of: pass, retry (the diagnosis or execution error
text becomes the next round's feedback), error on the last round, or a
best-effort accept on the last round. Summary and chart run only after a
result is accepted, and their failures never fail the query.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar

from ..config import get_settings
from ..db.client import ExecutionResult, RowStore
from ..llm import build_llm
from ..llm.client import TextCompletion
from ..models.types import (
    AgentEvent,
    ChartConfig,
    ConversationContext,
    FileSchema,
    QueryResult,
    SchemaAnalysis,
    ValidationResult,
)
from .chart_agent import run_chart_agent
from .events import EventSink
from .result_validator import run_validator
from .schema_agent import run_schema_agent
from .sql_agent import run_sql_agent
from .summary_agent import run_summary_agent


logger = logging.getLogger(__name__)

MAX_ROUNDS = 3

T = TypeVar("T")


class PipelineInputError(ValueError):
    pass


class AgentTimeoutError(TimeoutError):
    pass


@dataclass
class Outcome(Generic[T]):
    """Result of a best-effort step: a value, or the reason there is none."""

    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RoundOutcome:
    status: str  # passed | retry | failed | best_effort
    sql: str = ""
    feedback: Optional[str] = None
    execution: Optional[ExecutionResult] = None
    validation: Optional[ValidationResult] = None
    error: Optional[str] = None


def _error_text(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def _join_message(analysis: SchemaAnalysis) -> str:
    key = analysis.join_key
    if key is None:
        return "Single file query"
    return (
        f"Join: {key.file_a.file}.{key.file_a.column} <-> {key.file_b.file}.{key.file_b.column} "
        f"({key.match_type}, {key.confidence:.2f})"
    )


class AgentPipeline:
    def __init__(
        self,
        llm: Optional[TextCompletion] = None,
        store: Optional[RowStore] = None,
        agent_timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.llm = llm if llm is not None else build_llm(settings)
        self.store = store if store is not None else RowStore()
        self.agent_timeout_seconds = (
            agent_timeout_seconds if agent_timeout_seconds is not None else settings.agent_timeout_seconds
        )

    async def run(
        self,
        question: str,
        schemas: Sequence[FileSchema],
        sink: EventSink,
        context: Optional[ConversationContext] = None,
        file_ids: Optional[Iterable[str]] = None,
    ) -> QueryResult:
        question = (question or "").strip()
        if not question:
            raise PipelineInputError("Missing question")
        if not schemas:
            raise PipelineInputError("No data files available. Upload a CSV first.")

        scope = list(file_ids) if file_ids is not None else None
        started = time.monotonic()
        feedback: Optional[str] = None

        for round_no in range(1, MAX_ROUNDS + 1):
            outcome = await self._run_round(round_no, question, schemas, feedback, sink, context, scope)

            if outcome.status == "retry":
                feedback = outcome.feedback
                continue

            if outcome.status == "failed":
                return QueryResult(
                    sql=outcome.sql,
                    rounds=round_no,
                    timing=self._elapsed_ms(started),
                    error=outcome.error,
                )

            execution = outcome.execution
            summary, chart = await self._post_process(question, execution)
            sink.emit(
                AgentEvent(
                    type="query_complete",
                    message="Done",
                    data={"rowCount": execution.row_count, "rounds": round_no},
                )
            )
            return QueryResult(
                columns=execution.columns,
                rows=execution.rows,
                row_count=execution.row_count,
                sql=execution.sql,
                rounds=round_no,
                timing=self._elapsed_ms(started),
                summary=summary.value,
                chart=chart.value,
            )

        raise RuntimeError("Pipeline exhausted rounds without a terminal outcome")

    # =========================================================================
    # ONE ROUND
    # =========================================================================

    async def _run_round(
        self,
        round_no: int,
        question: str,
        schemas: Sequence[FileSchema],
        feedback: Optional[str],
        sink: EventSink,
        context: Optional[ConversationContext],
        file_ids: Optional[List[str]],
    ) -> RoundOutcome:
        final = round_no == MAX_ROUNDS
        stage = "schema"
        sql = ""
        try:
            sink.emit(
                AgentEvent(
                    type="agent_start",
                    agent="schema",
                    status="active",
                    message="Analyzing file schemas..." if round_no == 1
                    else f"Re-analyzing with feedback (round {round_no})...",
                )
            )
            analysis = await self._bounded(
                run_schema_agent(self.llm, question, schemas, feedback=feedback), "Schema Agent"
            )
            sink.emit(
                AgentEvent(
                    type="agent_complete",
                    agent="schema",
                    status="done",
                    message=_join_message(analysis),
                    data={"analysis": analysis.model_dump(mode="json", by_alias=True)},
                )
            )

            stage = "sql"
            sink.emit(AgentEvent(type="agent_start", agent="sql", status="active", message="Generating PostgreSQL query..."))
            sql = await self._bounded(
                run_sql_agent(self.llm, question, schemas, analysis, context=context), "SQL Agent"
            )
            sink.emit(AgentEvent(type="agent_complete", agent="sql", status="done", message="SQL generated", data={"sql": sql}))

            stage = "validator"
            sink.emit(AgentEvent(type="agent_start", agent="validator", status="active", message="Executing query..."))
            execution = await self.store.execute(sql, file_ids)
        except Exception as exc:
            error = _error_text(exc)
            logger.warning("Round %d failed at %s stage: %s", round_no, stage, error)
            if final:
                sink.emit(
                    AgentEvent(
                        type="query_error",
                        agent=stage,
                        status="error",
                        message=f"Query failed after {MAX_ROUNDS} rounds: {error}",
                    )
                )
                return RoundOutcome(status="failed", sql=sql, error=error)
            sink.emit(
                AgentEvent(
                    type="round_retry",
                    agent=stage,
                    status="retry",
                    message=f"{error} (retrying, round {round_no + 1})",
                    data={"error": error},
                )
            )
            return RoundOutcome(status="retry", sql=sql, feedback=error)

        sink.emit(
            AgentEvent(
                type="agent_progress",
                agent="validator",
                status="active",
                message=f"Query returned {execution.row_count} rows, validating...",
            )
        )
        validation = run_validator(execution.rows, execution.columns)

        if validation.status == "pass":
            sink.emit(
                AgentEvent(
                    type="agent_complete",
                    agent="validator",
                    status="done",
                    message=f"{validation.row_count} rows, {validation.null_percentage:.0f}% nulls. PASS",
                    data={"validation": validation.model_dump(mode="json", by_alias=True)},
                )
            )
            return RoundOutcome(status="passed", sql=execution.sql, execution=execution, validation=validation)

        if not final:
            sink.emit(
                AgentEvent(
                    type="round_retry",
                    agent="validator",
                    status="retry",
                    message=f"{validation.diagnosis} (retrying, round {round_no + 1})",
                    data={"diagnosis": validation.diagnosis},
                )
            )
            return RoundOutcome(
                status="retry",
                sql=execution.sql,
                feedback=validation.diagnosis,
                execution=execution,
                validation=validation,
            )

        sink.emit(
            AgentEvent(
                type="agent_complete",
                agent="validator",
                status="done",
                message=f"{validation.row_count} rows returned (best effort after {MAX_ROUNDS} rounds)",
                data={"validation": validation.model_dump(mode="json", by_alias=True)},
            )
        )
        return RoundOutcome(status="best_effort", sql=execution.sql, execution=execution, validation=validation)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _bounded(self, awaitable: Awaitable[T], label: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.agent_timeout_seconds)
        except asyncio.TimeoutError:
            raise AgentTimeoutError(f"{label} timed out after {self.agent_timeout_seconds:g}s") from None

    async def _best_effort(self, awaitable: Awaitable[T], label: str) -> Outcome[T]:
        try:
            value = await self._bounded(awaitable, label)
        except Exception as exc:
            logger.warning("%s failed, continuing without it: %s", label, _error_text(exc))
            return Outcome(error=_error_text(exc))
        return Outcome(value=value)

    async def _post_process(
        self, question: str, execution: ExecutionResult
    ) -> Tuple[Outcome[str], Outcome[ChartConfig]]:
        if not execution.rows:
            return Outcome(), Outcome()
        summary, chart = await asyncio.gather(
            self._best_effort(
                run_summary_agent(self.llm, question, execution.columns, execution.rows), "Summary Agent"
            ),
            self._best_effort(
                run_chart_agent(self.llm, question, execution.columns, execution.rows), "Chart Agent"
            ),
        )
        return summary, chart

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
