"""Tests for chart type selection and axis mapping."""

import json

import pytest

from backend.app.agent.chart_agent import (
    detect_chart_type,
    find_categorical_column,
    find_numeric_columns,
    has_valid_data,
    run_chart_agent,
)


DEPT_ROWS = [
    {"department": "Sales", "percentage": "41.5"},
    {"department": "Production", "percentage": 30},
    {"department": "IT/IS", "percentage": 18.5},
    {"department": "Admin", "percentage": 10},
]


# ============================================================================
# HEURISTICS
# ============================================================================

class TestDetectChartType:

    @pytest.mark.parametrize("question,columns,rows,expected", [
        ("What percentage of employees are in each department?", ["department", "n"], 4, "pie"),
        ("Show the salary distribution", ["title", "n"], 8, "pie"),
        ("Show the trend of training cost", ["training_date", "cost"], 30, "line"),
        ("Hires by month", ["m", "n"], 12, "line"),
        ("Heatmap of score by team and title", ["team", "title", "score"], 40, "heatmap"),
        ("Salary vs rating", ["salary", "rating"], 40, "scatter"),
        ("Is there a correlation between cost and score?", ["cost", "score"], 40, "scatter"),
        ("Top departments", ["department", "share_of_total"], 6, "pie"),
        ("Headcount", ["start_year", "n"], 9, "line"),
        ("Average score by department", ["department", "avg_score"], 6, None),
    ])
    def test_rules(self, question, columns, rows, expected):
        assert detect_chart_type(question, columns, rows) == expected

    def test_pie_needs_few_rows(self):
        assert detect_chart_type("percentage by title", ["title", "pct"], 25) is None

    def test_line_column_rule_needs_more_than_five_rows(self):
        assert detect_chart_type("Headcount", ["start_year", "n"], 5) is None


class TestColumnDetection:

    def test_numeric_columns(self):
        rows = [{"a": "1,5", "b": "2.5", "c": None}, {"a": "x", "b": 3, "c": None}]
        assert find_numeric_columns(["a", "b", "c"], rows) == ["b"]

    def test_categorical_column_skips_numeric_and_empty(self):
        rows = [{"blank": None, "n": 1, "dept": "Sales"}]
        assert find_categorical_column(["blank", "n", "dept"], rows, ["n"]) == "dept"

    @pytest.mark.parametrize("rows,expected", [
        ([{"v": 0}, {"v": None}, {"v": ""}], False),
        ([{"v": 0}, {"v": 2}], True),
        ([{"v": "n/a"}], True),
    ])
    def test_has_valid_data(self, rows, expected):
        assert has_valid_data(rows, ["v"]) is expected


# ============================================================================
# AGENT
# ============================================================================

class TestRunChartAgent:

    @pytest.mark.asyncio
    async def test_percentage_breakdown_is_pie_without_model_call(self, scripted_llm):
        llm = scripted_llm()
        chart = await run_chart_agent(
            llm, "What percentage of employees are in each department?", ["department", "percentage"], DEPT_ROWS
        )
        assert chart.type == "pie"
        assert chart.x_column == "department"
        assert chart.y_columns == ["percentage"]
        assert chart.x_values == ["Sales", "Production", "IT/IS", "Admin"]
        assert chart.series[0].values == [41.5, 30.0, 18.5, 10.0]
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_scatter_maps_two_numeric_columns(self, scripted_llm):
        rows = [{"name": "a", "salary": 10, "rating": 3}, {"name": "b", "salary": 20, "rating": 4}]
        chart = await run_chart_agent(scripted_llm(), "salary vs rating", ["name", "salary", "rating"], rows)
        assert chart.type == "scatter"
        assert chart.x_column == "salary"
        assert chart.y_columns == ["rating"]

    @pytest.mark.asyncio
    async def test_model_choice_is_used(self, scripted_llm):
        reply = json.dumps({
            "chartType": "bar",
            "xColumn": "department",
            "yColumns": ["avg_score"],
            "title": "Engagement by Department",
        })
        llm = scripted_llm({"chart": [reply]})
        rows = [{"department": "Sales", "avg_score": 4.2}, {"department": "IT", "avg_score": 3.9}]
        chart = await run_chart_agent(llm, "Average score by department", ["department", "avg_score"], rows)
        assert chart.type == "bar"
        assert chart.title == "Engagement by Department"
        assert len(llm.prompts("chart")) == 1

    @pytest.mark.asyncio
    async def test_model_answer_is_constrained_to_result(self, scripted_llm):
        reply = json.dumps({"chartType": "donut", "xColumn": "nope", "yColumns": "also_nope"})
        llm = scripted_llm({"chart": [reply]})
        rows = [{"department": "Sales", "avg_score": 4.2}]
        chart = await run_chart_agent(llm, "Average score by department", ["department", "avg_score"], rows)
        assert chart.type == "bar"
        assert chart.x_column == "department"
        assert chart.y_columns == ["avg_score"]

    @pytest.mark.asyncio
    async def test_unparseable_answer_falls_back_to_bar(self, scripted_llm):
        llm = scripted_llm({"chart": ["I think a bar chart would be nice"]})
        rows = [{"department": "Sales", "avg_score": 4.2}]
        chart = await run_chart_agent(llm, "Average score by department", ["department", "avg_score"], rows)
        assert chart.type == "bar"
        assert chart.title == "Average score by department"

    @pytest.mark.asyncio
    async def test_all_zero_values_yield_no_chart(self, scripted_llm):
        rows = [{"department": "Sales", "percentage": 0}, {"department": "IT", "percentage": None}]
        chart = await run_chart_agent(scripted_llm(), "percentage by department", ["department", "percentage"], rows)
        assert chart is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("columns,rows", [
        (["n"], [{"n": 1}]),
        (["department", "n"], []),
    ])
    async def test_nothing_to_chart(self, scripted_llm, columns, rows):
        llm = scripted_llm()
        assert await run_chart_agent(llm, "q", columns, rows) is None
        assert llm.calls == []
