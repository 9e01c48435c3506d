from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from .agent.events import EventSink, stream_pipeline
from .agent.golden_questions import GOLDEN
from .agent.join_detector import detect_schema_joins
from .agent.pipeline import AgentPipeline
from .agent.suggestions import generate_suggestions
from .config import get_settings
from .db.files import ANONYMOUS_USER_ID, DemoFileProtectedError, FileRepository
from .db.ingest import profile_rows
from .db.schema_snapshot import build_schema_snapshot
from .models.types import (
    FileInfo,
    FilePreview,
    QueryRequest,
    QueryResult,
    UploadedFile,
    UploadRequest,
    UploadResponse,
)


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="MergeAI Data Copilot API")


# =============================================================================
# DEPENDENCIES
# =============================================================================


@lru_cache(maxsize=1)
def get_repository() -> FileRepository:
    return FileRepository()


@lru_cache(maxsize=1)
def get_pipeline() -> AgentPipeline:
    return AgentPipeline()


def get_user_id(
    x_user_id: Optional[str] = Header(default=None),
    x_session_id: Optional[str] = Header(default=None),
) -> str:
    """Signed-in user id, else the per-browser anonymous session, else the shared demo identity."""
    return (x_user_id or "").strip() or (x_session_id or "").strip() or ANONYMOUS_USER_ID


def _error(status_code: int, error_code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error_code": error_code, "message": message})


def _file_info(f: UploadedFile) -> FileInfo:
    return FileInfo(
        id=f.id,
        file_name=f.file_name,
        columns=f.columns,
        column_types=f.column_types,
        row_count=f.row_count,
        is_demo=f.is_demo,
    )


# Global exception handler to catch all errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc)})


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"ok": True}


# =============================================================================
# QUERY (SSE)
# =============================================================================


@app.post("/api/query")
async def api_query(
    req: QueryRequest,
    user_id: str = Depends(get_user_id),
    repo: FileRepository = Depends(get_repository),
    pipeline: AgentPipeline = Depends(get_pipeline),
):
    question = req.question.strip()
    if not question:
        raise _error(400, "missing_question", "Missing question")

    files = await repo.list_visible(user_id)
    if not files:
        raise _error(400, "no_files", "No data files available")

    snapshot = build_schema_snapshot(files)
    logger.info("Query from %s over %d files: %s", user_id, len(snapshot.schemas), question)

    async def run(sink: EventSink) -> QueryResult:
        return await pipeline.run(
            question, snapshot.schemas, sink, context=req.context, file_ids=snapshot.file_ids
        )

    async def event_stream() -> AsyncIterator[str]:
        async for payload in stream_pipeline(run):
            yield f"data: {json.dumps(payload, default=str)}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


# =============================================================================
# FILES
# =============================================================================


@app.get("/api/files")
async def list_files(user_id: str = Depends(get_user_id), repo: FileRepository = Depends(get_repository)):
    files = await repo.list_visible(user_id)
    return [_file_info(f).model_dump(by_alias=True) for f in files]


@app.post("/api/upload")
async def upload(
    req: UploadRequest,
    user_id: str = Depends(get_user_id),
    repo: FileRepository = Depends(get_repository),
):
    if not req.file_name.strip() or not req.columns:
        raise _error(400, "missing_fields", "Missing required fields")
    if user_id == ANONYMOUS_USER_ID:
        raise _error(403, "demo_user", "Sign up to upload your own files")

    column_types = req.column_types
    sample_values = req.sample_values
    if column_types is None or sample_values is None:
        inferred_types, inferred_samples = profile_rows(req.columns, req.rows)
        column_types = column_types if column_types is not None else inferred_types
        sample_values = sample_values if sample_values is not None else inferred_samples

    logger.info("Upload: %s (%d rows, %d cols) for %s", req.file_name, len(req.rows), len(req.columns), user_id)
    uploaded = await repo.create(
        user_id=user_id,
        file_name=req.file_name,
        columns=req.columns,
        column_types=column_types,
        sample_values=sample_values,
        rows=req.rows,
    )
    return UploadResponse(
        id=uploaded.id,
        file_name=uploaded.file_name,
        columns=uploaded.columns,
        row_count=uploaded.row_count,
    ).model_dump(by_alias=True)


@app.delete("/api/files/{file_id}")
async def delete_file(
    file_id: str,
    user_id: str = Depends(get_user_id),
    repo: FileRepository = Depends(get_repository),
):
    try:
        await repo.delete(file_id, user_id)
    except DemoFileProtectedError as exc:
        raise _error(403, "demo_file", str(exc)) from exc
    except FileNotFoundError as exc:
        raise _error(404, "not_found", "File not found") from exc
    return {"success": True}


@app.get("/api/files/{file_id}/preview")
async def preview_file(
    file_id: str,
    user_id: str = Depends(get_user_id),
    repo: FileRepository = Depends(get_repository),
):
    try:
        uploaded, rows = await repo.preview(file_id, user_id)
    except FileNotFoundError as exc:
        raise _error(404, "not_found", "File not found") from exc
    except PermissionError as exc:
        raise _error(403, "unauthorized", "Unauthorized") from exc
    info = _file_info(uploaded)
    return FilePreview(**info.model_dump(), rows=rows).model_dump(by_alias=True)


# =============================================================================
# DISCOVERY
# =============================================================================


@app.get("/api/joins")
async def get_joins(user_id: str = Depends(get_user_id), repo: FileRepository = Depends(get_repository)):
    snapshot = build_schema_snapshot(await repo.list_visible(user_id))
    return {"joins": [j.as_dict() for j in detect_schema_joins(snapshot.schemas)]}


@app.get("/api/suggestions")
async def get_suggestions(user_id: str = Depends(get_user_id), repo: FileRepository = Depends(get_repository)):
    snapshot = build_schema_snapshot(await repo.list_visible(user_id))
    joins = detect_schema_joins(snapshot.schemas)
    suggestions = generate_suggestions(snapshot.schemas, joins)
    return {"suggestions": [s.model_dump(by_alias=True) for s in suggestions]}


@app.get("/api/golden-prompts")
def get_golden_prompts(limit: int = 5):
    limit = max(0, min(int(limit), len(GOLDEN)))
    return {
        "items": [
            {
                "question": item["question"],
                "expected": item.get("expected"),
                "tests": item.get("tests"),
            }
            for item in GOLDEN[:limit]
        ]
    }
