"""Shared fixtures: scripted LLM, scripted row store and HR demo schemas."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from backend.app.db.client import RowStore
from backend.app.models.types import FileSchema


class ScriptedLLM:
    """
    Completion fake keyed by agent role.

    Each role has a queue of replies; the last reply repeats once the queue is
    down to one item. A reply that is an exception instance is raised, and a
    float is treated as a delay in seconds (for timeout tests).
    """

    def __init__(self, replies: Optional[Dict[str, Sequence[Any]]] = None, default: str = ""):
        self.replies: Dict[str, List[Any]] = {k: list(v) for k, v in (replies or {}).items()}
        self.default = default
        self.calls: List[Tuple[str, str]] = []

    async def complete(self, prompt: str, agent: str) -> str:
        self.calls.append((agent, prompt))
        queue = self.replies.get(agent)
        if not queue:
            return self.default
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, float):
            await asyncio.sleep(reply)
            return self.default
        return reply

    def prompts(self, agent: str) -> List[str]:
        return [p for a, p in self.calls if a == agent]


class ScriptedRowStore(RowStore):
    """Real safety gate, scripted database: each execute() consumes one scripted outcome."""

    def __init__(self, outcomes: Sequence[Any], timeout_seconds: float = 1.0):
        super().__init__(dsn="postgresql://test@localhost/test", timeout_seconds=timeout_seconds)
        self.outcomes = list(outcomes)
        self.executed: List[str] = []

    async def _fetch(self, sql: str) -> List[Dict[str, Any]]:
        self.executed.append(sql)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, float):
            await asyncio.sleep(outcome)
            return []
        return [dict(r) for r in outcome]


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture
def scripted_store():
    return ScriptedRowStore


@pytest.fixture
def employee_schema() -> FileSchema:
    return FileSchema(
        file_id="f-emp",
        file_name="employee_data.csv",
        columns=["EmpID", "FirstName", "DepartmentType", "Title", "Current Employee Rating", "StartDate"],
        column_types={
            "EmpID": "number",
            "FirstName": "text",
            "DepartmentType": "text",
            "Title": "text",
            "Current Employee Rating": "number",
            "StartDate": "date",
        },
        sample_values={
            "EmpID": ["3427", "3428", "3429"],
            "DepartmentType": ["Production", "Sales", "IT/IS"],
        },
        row_count=3000,
    )


@pytest.fixture
def engagement_schema() -> FileSchema:
    return FileSchema(
        file_id="f-eng",
        file_name="employee_engagement_survey_data.csv",
        columns=["Employee ID", "Survey Date", "Engagement Score", "Satisfaction Score"],
        column_types={
            "Employee ID": "number",
            "Survey Date": "date",
            "Engagement Score": "number",
            "Satisfaction Score": "number",
        },
        sample_values={"Employee ID": ["3427", "3428", "3500"]},
        row_count=3000,
    )


@pytest.fixture
def hr_schemas(employee_schema, engagement_schema) -> List[FileSchema]:
    return [employee_schema, engagement_schema]


@pytest.fixture
def cross_file_analysis_json() -> str:
    return json.dumps(
        {
            "joinKey": {
                "fileA": {"column": "EmpID", "file": "employee_data.csv"},
                "fileB": {"column": "Employee ID", "file": "employee_engagement_survey_data.csv"},
                "confidence": 0.95,
                "matchType": "fuzzy",
            },
            "metrics": [
                {"column": "Engagement Score", "file": "employee_engagement_survey_data.csv", "aggregation": "AVG"}
            ],
            "warnings": [],
            "singleFileQuery": False,
        }
    )
