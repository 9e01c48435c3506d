"""Golden query runner for manual verification.

Sends each question to the streaming /api/query endpoint, drains the event
stream and prints SQL, summary, rounds and row samples.
Expected answers are documented for quick eyeballing; no automated asserts here.
Set API_URL env var to point at the running FastAPI service (default http://localhost:8000/api/query).

IMPORTANT: These golden prompts are for EVALUATION ONLY and must NOT be embedded
in the runtime SQL generation prompts to avoid data leakage.
"""

import json
import os
from typing import Any, Dict, Iterator, Optional

import requests

from .golden_questions import GOLDEN

API_URL = os.getenv("API_URL", "http://localhost:8000/api/query")
USER_ID = os.getenv("GOLDEN_USER_ID", "demo_user")


def iter_sse_payloads(resp: requests.Response) -> Iterator[Dict[str, Any]]:
    """Yield the JSON body of every `data:` line in an SSE response."""
    for line in resp.iter_lines(decode_unicode=True):
        if not line or not line.startswith("data:"):
            continue
        body = line[len("data:"):].strip()
        if body:
            yield json.loads(body)


def ask(question: str) -> Optional[Dict[str, Any]]:
    resp = requests.post(
        API_URL,
        headers={"Content-Type": "application/json", "X-User-Id": USER_ID},
        data=json.dumps({"question": question}),
        stream=True,
        timeout=120,
    )
    if resp.status_code != 200:
        print(f"HTTP {resp.status_code}: {resp.text}")
        return None

    result = None
    for payload in iter_sse_payloads(resp):
        kind = payload.get("type")
        if kind == "result":
            result = payload.get("data")
        elif kind in ("round_retry", "query_error"):
            print(f"  [{kind}] {payload.get('message')}")
    return result


def run_all():
    print(f"Using API_URL={API_URL}")
    passed = 0
    failed = 0

    for idx, item in enumerate(GOLDEN, start=1):
        q = item["question"]
        print("\n" + "=" * 80)
        print(f"[{idx}] Question: {q}")
        print(f"Expected: {item['expected']}")
        print(f"Tests: {item.get('tests', '')}")

        try:
            result = ask(q)
        except requests.RequestException as exc:
            print(f"Error: {exc}")
            failed += 1
            continue

        if result is None:
            print("No result event received")
            failed += 1
            continue

        print("SQL:")
        print(result.get("sql"))

        summary = result.get("summary")
        if summary:
            print("Summary:")
            print(summary)

        rows = result.get("rows") or []
        print(f"Row count: {result.get('rowCount', len(rows))}  Rounds: {result.get('rounds')}")
        if rows:
            print("Rows (sample):")
            print(json.dumps(rows[:5], indent=2, default=str))

        if result.get("error"):
            print(f"ERROR: {result['error']}")
            failed += 1
        else:
            passed += 1

    print("\n" + "=" * 80)
    print(f"SUMMARY: {passed} passed, {failed} failed out of {len(GOLDEN)}")


if __name__ == "__main__":
    run_all()
