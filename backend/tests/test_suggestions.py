import pytest

from backend.app.agent.join_detector import detect_schema_joins
from backend.app.agent.suggestions import (
    MAX_SUGGESTIONS,
    analyze_file,
    generate_suggestions,
    short_name,
)
from backend.app.models.types import FileSchema


@pytest.mark.parametrize("file_name,expected", [
    ("training_and_development_data.csv", "training"),
    ("Employee Data.CSV", "employee"),
    ("recruitment-data.csv", "recruitment"),
])
def test_short_name(file_name: str, expected: str):
    assert short_name(file_name) == expected


class TestAnalyzeFile:

    def test_buckets(self, employee_schema):
        analysis = analyze_file(employee_schema)
        assert analysis.ids == ["EmpID"]
        assert analysis.metrics == ["Current Employee Rating"]
        assert analysis.dimensions == ["DepartmentType", "Title"]
        assert analysis.dates == ["StartDate"]

    def test_text_metric_is_demoted(self):
        schema = FileSchema(
            file_id="f",
            file_name="pay.csv",
            columns=["Salary Band"],
            column_types={"Salary Band": "text"},
        )
        analysis = analyze_file(schema)
        assert analysis.metrics == []
        assert analysis.dimensions == ["Salary Band"]


class TestGenerateSuggestions:

    def test_no_files(self):
        assert generate_suggestions([], []) == []

    def test_cross_file_first(self, hr_schemas):
        suggestions = generate_suggestions(hr_schemas, detect_schema_joins(hr_schemas))
        assert suggestions[0].type == "cross"
        assert suggestions[0].text == "Show average Engagement Score by DepartmentType"
        assert suggestions[1].text == "Show Current Employee Rating trend over time by Title"
        assert len(suggestions) <= MAX_SUGGESTIONS

    def test_single_file(self, employee_schema):
        suggestions = generate_suggestions([employee_schema], [])
        assert [s.type for s in suggestions] == ["single"] * len(suggestions)
        assert suggestions[0].text == "What is the average Current Employee Rating by DepartmentType?"
        assert "Show Current Employee Rating trend over time" not in [s.text for s in suggestions]

    def test_no_duplicates_and_columns_used_once(self, hr_schemas):
        suggestions = generate_suggestions(hr_schemas, detect_schema_joins(hr_schemas))
        texts = [s.text.lower() for s in suggestions]
        assert len(texts) == len(set(texts))
        assert sum("departmenttype" in t for t in texts) == 1
