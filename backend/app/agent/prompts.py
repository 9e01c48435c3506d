from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from ..context.row_store_dialect import ROW_STORE_DIALECT_NOTES
from ..db.schema_snapshot import describe_for_schema_agent, describe_for_sql_agent
from ..models.types import ConversationContext, FileSchema, SchemaAnalysis
from .sql_templates import get_template_examples


SCHEMA_AGENT_RULES = """
# ROLE
You are a data schema analyst. Given file schemas, analyze the user's question and find how to answer it.

# RULES
1. If the question only needs ONE file, set singleFileQuery=true and joinKey=null
2. If the question needs TWO files, find the best JOIN key between them
3. Identify which columns contain the metrics the user is asking about
4. Note any data quality issues (case differences, abbreviations, NULLs)

# JOIN KEYS
- Look for columns that represent the SAME entity (Department↔Dept, Product_ID↔Product_ID)
- If exact same name, that's an "exact" match
- If the names only differ by case or separators, that's a "case_insensitive" match
- If column names differ but mean the same thing, that's a "fuzzy" match
- Check sample values to verify the match makes sense

# OUTPUT
Return ONLY valid JSON, no markdown, no explanation:
{
  "joinKey": {
    "fileA": { "column": "col_name", "file": "filename.csv" },
    "fileB": { "column": "col_name", "file": "filename.csv" },
    "confidence": 0.95,
    "matchType": "fuzzy"
  },
  "metrics": [
    { "column": "Salary", "file": "employees.csv", "aggregation": "AVG" }
  ],
  "warnings": ["Department vs Dept — abbreviation detected"],
  "singleFileQuery": false
}
aggregation must be one of AVG, SUM, COUNT, MAX, MIN.
""".strip()


def schema_agent_prompt(
    question: str,
    schemas: Sequence[FileSchema],
    join_candidates: str,
    feedback: Optional[str] = None,
) -> str:
    feedback_section = ""
    if feedback:
        feedback_section = f"""

# PREVIOUS ATTEMPT FEEDBACK (the last query failed or looked wrong)
{feedback}
Reconsider the join key and metric columns with this in mind, and add a warning describing the fix."""

    return f"""{SCHEMA_AGENT_RULES}

# FILES
{describe_for_schema_agent(schemas)}

# JOIN CANDIDATES (from column-name matching, verify against sample values)
{join_candidates}

# USER QUESTION
"{question}"{feedback_section}

Return JSON only:"""


def _analysis_section(analysis: SchemaAnalysis) -> str:
    lines: List[str] = []
    jk = analysis.join_key
    if jk is not None and not analysis.single_file_query:
        lines.append(
            f"- Proposed join: {jk.file_a.file}.{jk.file_a.column} ↔ {jk.file_b.file}.{jk.file_b.column} "
            f"({jk.match_type}, confidence {jk.confidence:.2f}) - verify it yourself"
        )
    else:
        lines.append("- Single-file question (no join proposed)")
    for m in analysis.metrics:
        lines.append(f"- Metric: {m.aggregation}({m.column}) from {m.file or 'any file'}")
    for w in analysis.warnings:
        lines.append(f"- Warning: {w}")
    return "\n".join(lines)


def _context_section(context: Optional[ConversationContext]) -> str:
    if context is None:
        return ""
    summary = context.previous_summary or "(none)"
    return f"""

# CONVERSATION CONTEXT (previous turn)
Previous question: "{context.previous_question}"
Previous SQL:
{context.previous_sql}
Previous answer: {summary}

If the new question refers to the previous result ("that", "those", "the same", "now only",
"break it down", "filter to", "drill into"), EXTEND the previous SQL (add filters, groupings
or columns) instead of writing an unrelated query. Otherwise treat it as a new question."""


def sql_generation_prompt(
    question: str,
    schemas: Sequence[FileSchema],
    analysis: SchemaAnalysis,
    context: Optional[ConversationContext] = None,
) -> str:
    return f"""
# ROLE
You are an expert PostgreSQL query builder.

{ROW_STORE_DIALECT_NOTES}

# HARD CONSTRAINTS (MUST FOLLOW)
1. Output ONLY SQL (no markdown, no explanations, no backticks, no trailing semicolon)
2. ONE read-only SELECT (or WITH ... SELECT) statement
3. Reference CSV columns ONLY through row_data->>'Column Name', never as native columns
4. ALWAYS cast with ::NUMERIC before arithmetic, AVG/SUM/MIN/MAX, numeric comparison or ORDER BY on a number
5. Use LOWER() on both sides of text JOIN predicates
6. Use one CTE per file for cross-file queries
7. GROUP BY the dimensions, ORDER BY the metric DESC, LIMIT 50

# JOIN KEY
Determine the correct JOIN key yourself by looking at column names and sample values.
Look for ID columns (EmpID, Employee ID, Product_ID, etc.) as the primary join key.
Do NOT join on descriptive columns like Location or Department unless the question specifically asks for it.

# FILES
{describe_for_sql_agent(schemas)}

# SCHEMA ANALYSIS
{_analysis_section(analysis)}

# REFERENCE PATTERNS
{get_template_examples()}{_context_section(context)}

# QUESTION
"{question}"

Return ONLY the raw SQL.
""".strip()


def summary_prompt(question: str, columns: Sequence[str], rows: Sequence[Dict[str, Any]], max_rows_sent: int = 10) -> str:
    preview = list(rows[:max_rows_sent])
    return f"""You are a data analyst. The user asked: "{question}"

The query returned {len(rows)} rows with columns: {", ".join(columns)}

Data (first {len(preview)} rows):
{json.dumps(preview, indent=2, default=str)}

Write a 2-3 sentence plain English summary of the results. Highlight the key insight (highest/lowest value, trend, comparison). Be specific with numbers. Do NOT use markdown or bullet points."""


def chart_prompt(
    question: str,
    columns: Sequence[str],
    rows: Sequence[Dict[str, Any]],
    numeric_columns: Sequence[str],
    max_rows_sent: int = 15,
) -> str:
    preview = list(rows[:max_rows_sent])
    categorical = [c for c in columns if c not in numeric_columns]
    return f"""You are a data visualization expert. Given query results, pick the best chart type and axis mapping.

RULES:
- Categorical + numeric → "bar"
- Time/date column + numeric → "line"
- Parts of a whole, percentages, breakdown (≤10 categories) → "pie"
- Two numeric columns → "scatter"
- Two categoricals + one numeric → "heatmap"
- For xColumn: pick the categorical/label column (NOT the numeric value column)
- For yColumns: pick the numeric/value column(s)
- Only use column names from ALL COLUMNS
- Default to "bar" if unsure

NUMERIC COLUMNS: {", ".join(numeric_columns) or "none detected"}
CATEGORICAL COLUMNS: {", ".join(categorical) or "none"}

ALL COLUMNS: {", ".join(columns)}

DATA (first {len(preview)} rows):
{json.dumps(preview, indent=2, default=str)}

USER QUESTION: "{question}"

Return ONLY valid JSON (no markdown, no backticks, no explanation):
{{"chartType": "bar", "xColumn": "column_name", "yColumns": ["column_name"], "title": "Short Chart Title"}}"""
