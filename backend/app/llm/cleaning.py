from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional


_THINK_RE = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)
# An unterminated <think> swallows the rest of the output
_OPEN_THINK_RE = re.compile(r"<think>.*\Z", re.IGNORECASE | re.DOTALL)
_SQL_FENCE_RE = re.compile(r"```(?:postgresql|postgres|sql)?\s*|```", re.IGNORECASE)
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*|```", re.IGNORECASE)
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def strip_reasoning(text: str) -> str:
    text = _THINK_RE.sub("", text or "")
    return _OPEN_THINK_RE.sub("", text).strip()


def clean_sql(text: str) -> str:
    """Raw model text -> bare SQL statement (no reasoning, fences, trailing ';')."""
    sql = strip_reasoning(text)
    sql = _SQL_FENCE_RE.sub("", sql).strip()
    while sql.endswith(";"):
        sql = sql[:-1].rstrip()
    return sql


def clean_json_text(text: str) -> str:
    return _JSON_FENCE_RE.sub("", strip_reasoning(text)).strip()


def parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Parse a JSON object from model output.
    Tries the cleaned text first, then the outermost {...} span inside it.
    """
    cleaned = clean_json_text(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _JSON_OBJECT_RE.search(cleaned)
        if not match:
            return None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None
