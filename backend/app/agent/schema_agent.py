from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from ..llm.cleaning import parse_json_object
from ..llm.client import TextCompletion
from ..models.types import AGGREGATIONS, FileSchema, SchemaAnalysis
from .join_detector import describe_joins, detect_schema_joins
from .prompts import schema_agent_prompt


logger = logging.getLogger(__name__)

FALLBACK_WARNING = "Schema Agent returned invalid JSON — using fallback"


def fallback_analysis() -> SchemaAnalysis:
    return SchemaAnalysis(
        join_key=None,
        metrics=[],
        warnings=[FALLBACK_WARNING],
        single_file_query=True,
    )


def _drop_unknown_metrics(payload: Dict[str, Any]) -> Dict[str, Any]:
    metrics = payload.get("metrics")
    if not isinstance(metrics, list):
        payload["metrics"] = []
        return payload
    kept: List[Any] = []
    for m in metrics:
        if not isinstance(m, dict):
            continue
        agg = m.get("aggregation")
        if isinstance(agg, str) and agg.strip().upper() in AGGREGATIONS and m.get("column"):
            kept.append(m)
    payload["metrics"] = kept
    return payload


def parse_schema_analysis(raw: str) -> SchemaAnalysis:
    """Model text -> SchemaAnalysis, or the conservative fallback."""
    payload = parse_json_object(raw)
    if payload is None:
        logger.warning("Schema Agent JSON parse failed: %s", raw[:500])
        return fallback_analysis()

    if payload.get("warnings") is None:
        payload["warnings"] = []
    try:
        analysis = SchemaAnalysis.model_validate(_drop_unknown_metrics(payload))
    except ValidationError as exc:
        logger.warning("Schema Agent output did not match the expected shape: %s", exc)
        return fallback_analysis()

    if analysis.single_file_query and analysis.join_key is not None:
        analysis = analysis.model_copy(update={"join_key": None})
    return analysis


async def run_schema_agent(
    llm: TextCompletion,
    question: str,
    schemas: Sequence[FileSchema],
    feedback: Optional[str] = None,
) -> SchemaAnalysis:
    joins = detect_schema_joins(schemas)
    prompt = schema_agent_prompt(question, schemas, describe_joins(joins), feedback=feedback)
    raw = await llm.complete(prompt, agent="schema")
    analysis = parse_schema_analysis(raw)
    logger.info("Schema Agent analysis: %s", analysis.model_dump_json(by_alias=True))
    return analysis
