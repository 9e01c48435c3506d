from __future__ import annotations

from typing import Any, Dict, Sequence

from ..llm.cleaning import strip_reasoning
from ..llm.client import TextCompletion
from .prompts import summary_prompt


SUMMARY_PREVIEW_ROWS = 10


async def run_summary_agent(
    llm: TextCompletion,
    question: str,
    columns: Sequence[str],
    rows: Sequence[Dict[str, Any]],
) -> str:
    prompt = summary_prompt(question, columns, rows, max_rows_sent=SUMMARY_PREVIEW_ROWS)
    return strip_reasoning(await llm.complete(prompt, agent="summary"))
