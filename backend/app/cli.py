from __future__ import annotations

import argparse
import asyncio
import json
import logging

from .agent.events import CallbackSink
from .agent.pipeline import AgentPipeline
from .db.files import ANONYMOUS_USER_ID, FileRepository
from .db.schema_snapshot import build_schema_snapshot
from .models.types import AgentEvent, QueryResult


def print_event(event: AgentEvent) -> None:
    agent = f"[{event.agent}]" if event.agent else ""
    print(f"{event.type:<15} {agent:<12} {event.message or ''}")


async def ask(question: str, user_id: str) -> QueryResult:
    files = await FileRepository().list_visible(user_id)
    snapshot = build_schema_snapshot(files)
    pipe = AgentPipeline()
    return await pipe.run(question, snapshot.schemas, CallbackSink(print_event), file_ids=snapshot.file_ids)


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--question", type=str, required=True)
    ap.add_argument("--user-id", type=str, default=ANONYMOUS_USER_ID, help="Identity whose files are visible")
    ap.add_argument("--max-rows", type=int, default=20)
    ap.add_argument("--no-rows", action="store_true", help="Omit rows from CLI output")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    out = asyncio.run(ask(args.question, args.user_id))

    print("\n=== SQL ===")
    print(out.sql)
    print(f"\nrounds={out.rounds} rows={out.row_count} timing={out.timing}ms")

    if out.error:
        print("\n=== ERROR ===")
        print(out.error)

    if out.summary:
        print("\n=== SUMMARY ===")
        print(out.summary)

    if out.chart:
        print("\n=== CHART ===")
        print(f"{out.chart.type}: {out.chart.title} (x={out.chart.x_column}, y={', '.join(out.chart.y_columns)})")

    if out.rows and not args.no_rows:
        print("\n=== ROWS (sample) ===")
        print(json.dumps(out.rows[: args.max_rows], indent=2, default=str))


if __name__ == "__main__":
    main()
