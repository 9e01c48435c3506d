import pytest

from backend.app.agent.summary_agent import SUMMARY_PREVIEW_ROWS, run_summary_agent


@pytest.mark.asyncio
async def test_summary_strips_reasoning(scripted_llm):
    llm = scripted_llm({"summary": ["<think>compare values</think> Sales has the highest score at 4.2."]})
    text = await run_summary_agent(llm, "q", ["dept", "score"], [{"dept": "Sales", "score": 4.2}])
    assert text == "Sales has the highest score at 4.2."


@pytest.mark.asyncio
async def test_summary_prompt_caps_rows(scripted_llm):
    llm = scripted_llm({"summary": ["ok"]})
    rows = [{"dept": f"D{i}", "score": i} for i in range(25)]
    await run_summary_agent(llm, "Scores by department", ["dept", "score"], rows)

    prompt = llm.prompts("summary")[0]
    assert "returned 25 rows" in prompt
    assert f"first {SUMMARY_PREVIEW_ROWS} rows" in prompt
    assert '"D9"' in prompt
    assert '"D10"' not in prompt


@pytest.mark.asyncio
async def test_summary_errors_propagate(scripted_llm):
    llm = scripted_llm({"summary": [RuntimeError("rate limited")]})
    with pytest.raises(RuntimeError):
        await run_summary_agent(llm, "q", ["a"], [{"a": 1}])
