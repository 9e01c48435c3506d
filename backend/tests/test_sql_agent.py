import pytest

from backend.app.agent.schema_agent import parse_schema_analysis
from backend.app.agent.sql_agent import run_sql_agent
from backend.app.models.types import ConversationContext, SchemaAnalysis


SQL = (
    "SELECT e.row_data->>'DepartmentType' AS department, "
    "AVG((s.row_data->>'Engagement Score')::NUMERIC) AS avg_engagement "
    "FROM uploaded_rows e JOIN uploaded_rows s "
    "ON LOWER(TRIM(e.row_data->>'EmpID')) = LOWER(TRIM(s.row_data->>'Employee ID')) "
    "GROUP BY 1 ORDER BY 2 DESC LIMIT 50"
)


class TestRunSqlAgent:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [
        SQL,
        f"```sql\n{SQL};\n```",
        f"<think>join on EmpID</think>{SQL}",
        f"{SQL};;",
    ])
    async def test_output_is_cleaned(self, scripted_llm, hr_schemas, raw: str):
        llm = scripted_llm({"sql": [raw]})
        sql = await run_sql_agent(llm, "q", hr_schemas, SchemaAnalysis(single_file_query=True))
        assert sql == SQL

    @pytest.mark.asyncio
    async def test_prompt_carries_dialect_and_analysis(self, scripted_llm, hr_schemas, cross_file_analysis_json):
        llm = scripted_llm({"sql": [SQL]})
        analysis = parse_schema_analysis(cross_file_analysis_json)
        await run_sql_agent(llm, "Average engagement by department", hr_schemas, analysis)

        prompt = llm.prompts("sql")[0]
        assert "row_data->>" in prompt
        assert "file_id = 'f-emp'" in prompt
        assert "Proposed join: employee_data.csv.EmpID" in prompt
        assert "Metric: AVG(Engagement Score)" in prompt
        assert "CONVERSATION CONTEXT" not in prompt

    @pytest.mark.asyncio
    async def test_follow_up_context_is_in_prompt(self, scripted_llm, hr_schemas):
        llm = scripted_llm({"sql": [SQL]})
        context = ConversationContext(
            previous_question="Average engagement by department",
            previous_sql=SQL,
            previous_summary="Sales leads with 4.2.",
        )
        await run_sql_agent(llm, "now only for Sales", hr_schemas, SchemaAnalysis(), context=context)

        prompt = llm.prompts("sql")[0]
        assert "CONVERSATION CONTEXT" in prompt
        assert "Previous question: \"Average engagement by department\"" in prompt
        assert "Sales leads with 4.2." in prompt
        assert "EXTEND the previous SQL" in prompt
