from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ..config import get_settings
from ..models.types import UploadedFile


logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 500
PREVIEW_ROWS = 20
DEMO_USER_ID = "demo"
# Identity of callers with neither a user id nor a session; read-only
ANONYMOUS_USER_ID = "demo_user"

SCHEMA_DDL = """
create table if not exists uploaded_files (
    id uuid primary key default gen_random_uuid(),
    user_id varchar(255) not null,
    file_name varchar(255) not null,
    columns jsonb not null,
    column_types jsonb not null,
    sample_values jsonb,
    row_count integer,
    is_demo boolean default false,
    created_at timestamp default now()
);

create table if not exists uploaded_rows (
    id bigserial primary key,
    file_id uuid references uploaded_files(id) on delete cascade,
    user_id varchar(255) not null,
    row_data jsonb not null
);

create index if not exists idx_rows_file on uploaded_rows (file_id);
create index if not exists idx_rows_user on uploaded_rows (user_id);
"""

FILE_COLUMNS = "id::text as id, user_id, file_name, columns, column_types, sample_values, row_count, is_demo, created_at"


class DemoFileProtectedError(PermissionError):
    pass


def chunked(rows: Sequence[Dict[str, Any]], size: int = INSERT_BATCH_SIZE) -> Iterator[Sequence[Dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


def _to_file(record: Dict[str, Any]) -> UploadedFile:
    return UploadedFile(
        id=str(record["id"]),
        user_id=record["user_id"],
        file_name=record["file_name"],
        columns=list(record.get("columns") or []),
        column_types=dict(record.get("column_types") or {}),
        sample_values=dict(record.get("sample_values") or {}),
        row_count=record.get("row_count") or 0,
        is_demo=bool(record.get("is_demo")),
        created_at=record.get("created_at"),
    )


class FileRepository:
    """uploaded_files / uploaded_rows access. Rows are insert-only."""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or get_settings().database_url

    async def _connect(self) -> psycopg.AsyncConnection:
        if not self.dsn:
            raise RuntimeError("DATABASE_URL is not configured")
        return await psycopg.AsyncConnection.connect(self.dsn, autocommit=True, prepare_threshold=None)

    async def ensure_schema(self) -> None:
        async with await self._connect() as conn:
            await conn.execute(SCHEMA_DDL)

    async def list_visible(self, user_id: str) -> List[UploadedFile]:
        """Files owned by user_id plus every demo file."""
        async with await self._connect() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"select {FILE_COLUMNS} from uploaded_files "
                    "where user_id = %s or is_demo = true order by created_at",
                    (user_id,),
                )
                return [_to_file(r) for r in await cur.fetchall()]

    async def get(self, file_id: str) -> Optional[UploadedFile]:
        async with await self._connect() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"select {FILE_COLUMNS} from uploaded_files where id = %s limit 1",
                    (file_id,),
                )
                record = await cur.fetchone()
        return _to_file(record) if record else None

    async def create(
        self,
        user_id: str,
        file_name: str,
        columns: List[str],
        column_types: Dict[str, str],
        sample_values: Dict[str, List[str]],
        rows: Sequence[Dict[str, Any]],
        is_demo: bool = False,
    ) -> UploadedFile:
        async with await self._connect() as conn:
            async with conn.transaction():
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(
                        "insert into uploaded_files "
                        "(user_id, file_name, columns, column_types, sample_values, row_count, is_demo) "
                        f"values (%s, %s, %s, %s, %s, %s, %s) returning {FILE_COLUMNS}",
                        (
                            user_id,
                            file_name,
                            Jsonb(list(columns)),
                            Jsonb(dict(column_types)),
                            Jsonb(dict(sample_values)),
                            len(rows),
                            is_demo,
                        ),
                    )
                    record = await cur.fetchone()
                    uploaded = _to_file(record)

                    inserted = 0
                    for batch in chunked(rows):
                        await cur.executemany(
                            "insert into uploaded_rows (file_id, user_id, row_data) values (%s, %s, %s)",
                            [(uploaded.id, user_id, Jsonb(dict(row))) for row in batch],
                        )
                        inserted += len(batch)

        logger.info("Inserted %d rows for %s (%s)", inserted, file_name, uploaded.id)
        return uploaded

    async def delete(self, file_id: str, user_id: str) -> None:
        """Owner-only delete; rows go with the file (ON DELETE CASCADE)."""
        async with await self._connect() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    "select id, is_demo from uploaded_files where id = %s and user_id = %s limit 1",
                    (file_id, user_id),
                )
                record = await cur.fetchone()
                if record is None:
                    raise FileNotFoundError(f"File not found: {file_id}")
                if record["is_demo"]:
                    raise DemoFileProtectedError("Cannot delete demo files")
                await cur.execute("delete from uploaded_files where id = %s", (file_id,))

    async def preview(
        self, file_id: str, user_id: str, limit: int = PREVIEW_ROWS
    ) -> tuple[UploadedFile, List[Dict[str, Any]]]:
        uploaded = await self.get(file_id)
        if uploaded is None:
            raise FileNotFoundError(f"File not found: {file_id}")
        if uploaded.user_id != user_id and not uploaded.is_demo:
            raise PermissionError("Unauthorized")

        async with await self._connect() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    "select row_data from uploaded_rows where file_id = %s order by id limit %s",
                    (file_id, int(limit)),
                )
                rows = [r["row_data"] for r in await cur.fetchall()]
        return uploaded, rows

    async def delete_demo_files(self) -> int:
        async with await self._connect() as conn:
            cur = await conn.execute("delete from uploaded_files where is_demo = true")
            return cur.rowcount
