from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Protocol

from ..models.types import AgentEvent, QueryResult


logger = logging.getLogger(__name__)

RESULT_EVENT = "result"


class EventSink(Protocol):
    """Where the pipeline appends progress events, in causal order."""

    def emit(self, event: AgentEvent) -> None:
        ...


class ListSink:
    def __init__(self) -> None:
        self.events: List[AgentEvent] = []

    def emit(self, event: AgentEvent) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [e.type for e in self.events]


class CallbackSink:
    def __init__(self, callback: Callable[[AgentEvent], None]) -> None:
        self.callback = callback

    def emit(self, event: AgentEvent) -> None:
        self.callback(event)


class QueueSink:
    """Push-style channel: the pipeline produces, a transport drains."""

    def __init__(self) -> None:
        self.queue: "asyncio.Queue[Optional[AgentEvent]]" = asyncio.Queue()

    def emit(self, event: AgentEvent) -> None:
        self.queue.put_nowait(event)

    def close(self) -> None:
        self.queue.put_nowait(None)


def event_payload(event: AgentEvent) -> Dict[str, Any]:
    return event.model_dump(mode="json", by_alias=True, exclude_none=True)


def result_payload(result: QueryResult) -> Dict[str, Any]:
    return {"type": RESULT_EVENT, "data": result.model_dump(mode="json", by_alias=True, exclude_none=True)}


async def stream_pipeline(
    run: Callable[[EventSink], Awaitable[QueryResult]],
) -> AsyncIterator[Dict[str, Any]]:
    """
    Drive `run` as a task and yield each event payload as soon as it is emitted,
    followed by exactly one final result (or query_error) payload.
    """
    sink = QueueSink()

    async def _runner() -> QueryResult:
        try:
            return await run(sink)
        finally:
            sink.close()

    task = asyncio.create_task(_runner())
    try:
        while True:
            event = await sink.queue.get()
            if event is None:
                break
            yield event_payload(event)

        try:
            result = await task
        except Exception as exc:
            logger.exception("Pipeline task failed")
            yield {"type": "query_error", "message": str(exc)}
            return
        yield result_payload(result)
    finally:
        if not task.done():
            task.cancel()
