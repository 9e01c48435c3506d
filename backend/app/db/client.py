from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import psycopg
from psycopg.rows import dict_row

from ..agent.validate_sql import MAX_ROWS, scope_to_files, validate_and_patch_sql
from ..config import get_settings


logger = logging.getLogger(__name__)

QUERY_TIMEOUT_SECONDS = 10.0


class QueryTimeoutError(TimeoutError):
    pass


@dataclass
class ExecutionResult:
    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    sql: str = ""

    @property
    def row_count(self) -> int:
        return len(self.rows)


def parse_result(records: List[Dict[str, Any]]) -> Tuple[List[str], List[Dict[str, Any]]]:
    if not records:
        return [], []
    columns = list(records[0].keys())
    return columns, [dict(r) for r in records]


class RowStore:
    """
    Execution surface for agent-generated SQL:
    - Every statement passes the safety gate (read-only, single statement, LIMIT cap)
    - Reads of uploaded_rows are scoped to the caller's visible files
    - One connection per call; the timeout is enforced here with asyncio
      cancellation because session settings are not relied upon
    - Returns rows as list-of-dicts
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_rows: int = MAX_ROWS,
    ):
        settings = get_settings()
        self.dsn = dsn or settings.database_url_readonly
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else QUERY_TIMEOUT_SECONDS
        self.max_rows = max_rows

    def prepare(self, sql: str, file_ids: Optional[Iterable[str]] = None) -> Tuple[str, str]:
        """Returns (gated_sql, executable_sql). Raises UnsafeQueryError."""
        gated = validate_and_patch_sql(sql, max_rows=self.max_rows).sql
        executable = scope_to_files(gated, file_ids) if file_ids is not None else gated
        return gated, executable

    async def execute(self, sql: str, file_ids: Optional[Iterable[str]] = None) -> ExecutionResult:
        gated, executable = self.prepare(sql, file_ids)
        logger.debug("Executing agent SQL:\n%s", executable)
        try:
            records = await asyncio.wait_for(self._fetch(executable), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise QueryTimeoutError(f"Query timed out ({self.timeout_seconds:g}s limit)") from None

        columns, rows = parse_result(records)
        return ExecutionResult(columns=columns, rows=rows, sql=gated)

    async def _fetch(self, sql: str) -> List[Dict[str, Any]]:
        if not self.dsn:
            raise RuntimeError("DATABASE_URL_READONLY is not configured")
        # prepare_threshold=None keeps this pgbouncer-safe
        async with await psycopg.AsyncConnection.connect(
            self.dsn, autocommit=True, prepare_threshold=None
        ) as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(sql)
                if cur.description is None:
                    return []
                return list(await cur.fetchall())
