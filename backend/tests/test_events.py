import pytest

from backend.app.agent.events import CallbackSink, ListSink, stream_pipeline
from backend.app.models.types import AgentEvent, QueryResult


def test_list_sink_keeps_order():
    sink = ListSink()
    sink.emit(AgentEvent(type="agent_start", agent="schema", status="active"))
    sink.emit(AgentEvent(type="agent_complete", agent="schema", status="done"))
    assert sink.types() == ["agent_start", "agent_complete"]


def test_callback_sink():
    seen = []
    CallbackSink(seen.append).emit(AgentEvent(type="query_complete"))
    assert [e.type for e in seen] == ["query_complete"]


class TestStreamPipeline:

    @pytest.mark.asyncio
    async def test_events_then_result(self):
        async def run(sink):
            sink.emit(AgentEvent(type="agent_start", agent="schema", status="active", message="Analyzing"))
            sink.emit(AgentEvent(type="query_complete", message="Done"))
            return QueryResult(sql="SELECT 1", rounds=1, row_count=0)

        payloads = [p async for p in stream_pipeline(run)]
        assert [p["type"] for p in payloads] == ["agent_start", "query_complete", "result"]
        assert payloads[0] == {"type": "agent_start", "agent": "schema", "status": "active", "message": "Analyzing"}
        assert payloads[-1]["data"]["sql"] == "SELECT 1"
        assert payloads[-1]["data"]["rowCount"] == 0

    @pytest.mark.asyncio
    async def test_task_failure_becomes_query_error(self):
        async def run(sink):
            sink.emit(AgentEvent(type="agent_start", agent="schema", status="active"))
            raise RuntimeError("boom")

        payloads = [p async for p in stream_pipeline(run)]
        assert [p["type"] for p in payloads] == ["agent_start", "query_error"]
        assert payloads[-1]["message"] == "boom"
