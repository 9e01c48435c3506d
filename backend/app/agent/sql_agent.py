from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..llm.cleaning import clean_sql
from ..llm.client import TextCompletion
from ..models.types import ConversationContext, FileSchema, SchemaAnalysis
from .prompts import sql_generation_prompt


logger = logging.getLogger(__name__)


async def run_sql_agent(
    llm: TextCompletion,
    question: str,
    schemas: Sequence[FileSchema],
    analysis: SchemaAnalysis,
    context: Optional[ConversationContext] = None,
) -> str:
    prompt = sql_generation_prompt(question, schemas, analysis, context=context)
    raw = await llm.complete(prompt, agent="sql")
    sql = clean_sql(raw)
    logger.info("SQL Agent generated:\n%s", sql)
    return sql
