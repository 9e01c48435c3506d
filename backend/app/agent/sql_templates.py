"""SQL reference patterns for the JSONB row store.

These templates demonstrate the correct patterns for:
- Single-file aggregation with explicit numeric casts
- Cross-file joins through one CTE per file
- Case-insensitive join predicates

IMPORTANT: These are reference templates. The LLM should adapt these patterns
to the specific question, not copy them verbatim.
"""

from __future__ import annotations


# =============================================================================
# PATTERN A: SINGLE-FILE AGGREGATION
# =============================================================================

SINGLE_FILE_AGGREGATE = """
SELECT row_data->>'{dimension}' AS {dimension_alias},
       ROUND(AVG(NULLIF(row_data->>'{metric}', '')::NUMERIC), 2) AS avg_{metric_alias}
FROM uploaded_rows
WHERE file_id = '{file_id}'
GROUP BY row_data->>'{dimension}'
ORDER BY avg_{metric_alias} DESC NULLS LAST
LIMIT 50
"""

# =============================================================================
# PATTERN B: CROSS-FILE JOIN (ONE CTE PER FILE)
# =============================================================================

CROSS_FILE_JOIN = """
WITH a AS (
    SELECT row_data->>'{key_a}' AS join_key,
           row_data->>'{dimension}' AS {dimension_alias}
    FROM uploaded_rows
    WHERE file_id = '{file_a_id}'
),
b AS (
    SELECT row_data->>'{key_b}' AS join_key,
           NULLIF(row_data->>'{metric}', '')::NUMERIC AS {metric_alias}
    FROM uploaded_rows
    WHERE file_id = '{file_b_id}'
)
SELECT a.{dimension_alias}, ROUND(AVG(b.{metric_alias}), 2) AS avg_{metric_alias}
FROM a
JOIN b ON LOWER(TRIM(a.join_key)) = LOWER(TRIM(b.join_key))
GROUP BY a.{dimension_alias}
ORDER BY avg_{metric_alias} DESC NULLS LAST
LIMIT 50
"""

# =============================================================================
# PATTERN C: PERCENTAGE BREAKDOWN
# =============================================================================

PERCENTAGE_BREAKDOWN = """
SELECT row_data->>'{dimension}' AS {dimension_alias},
       COUNT(*) AS count,
       ROUND(100.0 * COUNT(*) / SUM(COUNT(*)) OVER (), 1) AS percentage
FROM uploaded_rows
WHERE file_id = '{file_id}'
GROUP BY row_data->>'{dimension}'
ORDER BY count DESC
LIMIT 50
"""


def get_template_examples() -> str:
    """Return formatted template examples for the SQL prompt."""
    return f"""
## PATTERN A: Single-file aggregation (cast before AVG/SUM/ORDER BY)
{SINGLE_FILE_AGGREGATE.strip()}

## PATTERN B: Cross-file join (one CTE per file, LOWER() on both join sides)
{CROSS_FILE_JOIN.strip()}

## PATTERN C: Percentage breakdown
{PERCENTAGE_BREAKDOWN.strip()}
""".strip()
