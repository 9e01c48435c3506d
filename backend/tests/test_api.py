"""HTTP surface tests: FastAPI TestClient with repository/pipeline overrides."""

import json
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from backend.app.agent.pipeline import AgentPipeline
from backend.app.db.files import DemoFileProtectedError
from backend.app.main import app, get_pipeline, get_repository
from backend.app.models.types import UploadedFile


SQL = "SELECT row_data->>'DepartmentType' AS department, COUNT(*) AS n FROM uploaded_rows GROUP BY 1"


class FakeRepository:
    def __init__(self, files: Optional[List[UploadedFile]] = None):
        self.files = list(files or [])
        self.created: List[Dict[str, Any]] = []
        self.list_calls: List[str] = []

    async def list_visible(self, user_id: str) -> List[UploadedFile]:
        self.list_calls.append(user_id)
        return [f for f in self.files if f.user_id == user_id or f.is_demo]

    async def create(self, **kwargs) -> UploadedFile:
        self.created.append(kwargs)
        return UploadedFile(
            id="new-file",
            user_id=kwargs["user_id"],
            file_name=kwargs["file_name"],
            columns=kwargs["columns"],
            row_count=len(kwargs["rows"]),
        )

    async def delete(self, file_id: str, user_id: str) -> None:
        match = next((f for f in self.files if f.id == file_id and f.user_id == user_id), None)
        if match is None:
            raise FileNotFoundError(file_id)
        if match.is_demo:
            raise DemoFileProtectedError("Cannot delete demo files")

    async def preview(self, file_id: str, user_id: str, limit: int = 20):
        match = next((f for f in self.files if f.id == file_id), None)
        if match is None:
            raise FileNotFoundError(file_id)
        if match.user_id != user_id and not match.is_demo:
            raise PermissionError("Unauthorized")
        return match, [{"EmpID": "3427"}]


@pytest.fixture
def demo_file() -> UploadedFile:
    return UploadedFile(
        id="demo-emp",
        user_id="demo",
        file_name="employee_data.csv",
        columns=["EmpID", "DepartmentType"],
        column_types={"EmpID": "number", "DepartmentType": "text"},
        sample_values={"EmpID": ["3427"], "DepartmentType": ["Sales"]},
        row_count=3000,
        is_demo=True,
    )


@pytest.fixture
def private_file() -> UploadedFile:
    return UploadedFile(
        id="mine",
        user_id="u1",
        file_name="employee_engagement_survey_data.csv",
        columns=["Employee ID", "Engagement Score"],
        column_types={"Employee ID": "number", "Engagement Score": "number"},
        row_count=10,
    )


@pytest.fixture
def repo(demo_file, private_file) -> FakeRepository:
    return FakeRepository([demo_file, private_file])


@pytest.fixture
def client(repo, scripted_llm, scripted_store):
    llm = scripted_llm({
        "schema": ['{"joinKey": null, "metrics": [], "warnings": [], "singleFileQuery": true}'],
        "sql": [SQL],
        "summary": ["Sales is the largest department."],
        "chart": ["not json"],
    })
    store = scripted_store([[{"department": "Sales", "n": 3}, {"department": "IT", "n": 1}]])
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_pipeline] = lambda: AgentPipeline(llm=llm, store=store, agent_timeout_seconds=5.0)
    yield TestClient(app)
    app.dependency_overrides = {}


def sse_payloads(body: str) -> List[Dict[str, Any]]:
    return [json.loads(line[len("data: "):]) for line in body.splitlines() if line.startswith("data: ")]


# ============================================================================
# QUERY
# ============================================================================

class TestQueryEndpoint:

    def test_streams_events_then_result(self, client):
        resp = client.post("/api/query", json={"question": "How many employees per department?"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")

        payloads = sse_payloads(resp.text)
        types = [p["type"] for p in payloads]
        assert types[0] == "agent_start"
        assert types[-2:] == ["query_complete", "result"]

        result = payloads[-1]["data"]
        assert result["rowCount"] == 2
        assert result["rounds"] == 1
        assert result["summary"] == "Sales is the largest department."
        assert result["chart"]["type"] == "bar"

    @pytest.mark.parametrize("body", [{"question": ""}, {"question": "   "}, {}])
    def test_missing_question_is_400(self, client, body):
        resp = client.post("/api/query", json=body)
        assert resp.status_code == 400
        assert resp.json()["detail"]["message"] == "Missing question"

    def test_no_files_is_400(self, client, repo):
        repo.files = []
        resp = client.post("/api/query", json={"question": "anything"})
        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "no_files"

    def test_unhandled_error_hides_traceback(self, client, repo):
        async def broken(user_id):
            raise RuntimeError("connection refused")

        repo.list_visible = broken
        resp = TestClient(app, raise_server_exceptions=False).post("/api/query", json={"question": "anything"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "connection refused"}


# ============================================================================
# IDENTITY & FILES
# ============================================================================

class TestFiles:

    @pytest.mark.parametrize("headers,expected", [
        ({}, "demo_user"),
        ({"X-Session-Id": "anon_123"}, "anon_123"),
        ({"X-User-Id": "u1", "X-Session-Id": "anon_123"}, "u1"),
    ])
    def test_identity_resolution(self, client, repo, headers, expected):
        client.get("/api/files", headers=headers)
        assert repo.list_calls[-1] == expected

    def test_list_shows_own_and_demo_files(self, client):
        anon = client.get("/api/files").json()
        owner = client.get("/api/files", headers={"X-User-Id": "u1"}).json()
        assert [f["id"] for f in anon] == ["demo-emp"]
        assert [f["id"] for f in owner] == ["demo-emp", "mine"]
        assert owner[0]["isDemo"] is True
        assert owner[0]["fileName"] == "employee_data.csv"

    def test_demo_user_cannot_upload(self, client, repo):
        resp = client.post(
            "/api/upload",
            json={"fileName": "x.csv", "columns": ["a"], "rows": [{"a": "1"}]},
        )
        assert resp.status_code == 403
        assert repo.created == []

    def test_upload_infers_types_when_missing(self, client, repo):
        resp = client.post(
            "/api/upload",
            headers={"X-User-Id": "u1"},
            json={
                "fileName": "sales.csv",
                "columns": ["Region", "Revenue"],
                "rows": [{"Region": "North", "Revenue": "$1,200"}, {"Region": "South", "Revenue": "800"}],
            },
        )
        assert resp.status_code == 200
        assert resp.json() == {"id": "new-file", "fileName": "sales.csv", "columns": ["Region", "Revenue"], "rowCount": 2}
        created = repo.created[0]
        assert created["user_id"] == "u1"
        assert created["column_types"] == {"Region": "text", "Revenue": "number"}
        assert created["sample_values"]["Region"] == ["North", "South"]

    def test_upload_missing_fields(self, client):
        resp = client.post(
            "/api/upload",
            headers={"X-User-Id": "u1"},
            json={"fileName": "x.csv", "columns": [], "rows": []},
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize("file_id,user,status", [
        ("mine", "u1", 200),
        ("demo-emp", "demo", 403),
        ("mine", "someone-else", 404),
        ("missing", "u1", 404),
    ])
    def test_delete(self, client, file_id, user, status):
        resp = client.delete(f"/api/files/{file_id}", headers={"X-User-Id": user})
        assert resp.status_code == status

    @pytest.mark.parametrize("file_id,user,status", [
        ("mine", "u1", 200),
        ("demo-emp", "anyone", 200),
        ("mine", "someone-else", 403),
        ("missing", "u1", 404),
    ])
    def test_preview(self, client, file_id, user, status):
        resp = client.get(f"/api/files/{file_id}/preview", headers={"X-User-Id": user})
        assert resp.status_code == status
        if status == 200:
            assert resp.json()["rows"] == [{"EmpID": "3427"}]


# ============================================================================
# DISCOVERY
# ============================================================================

class TestDiscovery:

    def test_health(self, client):
        assert client.get("/health").json() == {"ok": True}

    def test_joins_between_visible_files(self, client):
        joins = client.get("/api/joins", headers={"X-User-Id": "u1"}).json()["joins"]
        assert len(joins) == 1
        assert joins[0]["matchType"] == "fuzzy"
        assert {joins[0]["fileA"]["column"], joins[0]["fileB"]["column"]} == {"EmpID", "Employee ID"}

    def test_suggestions(self, client):
        suggestions = client.get("/api/suggestions", headers={"X-User-Id": "u1"}).json()["suggestions"]
        assert suggestions
        assert {s["type"] for s in suggestions} <= {"single", "cross"}

    def test_golden_prompts(self, client):
        items = client.get("/api/golden-prompts", params={"limit": 3}).json()["items"]
        assert len(items) == 3
        assert all(item["question"] for item in items)
