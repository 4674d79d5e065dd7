# scripts/smoke_run_workflow.py
import asyncio
import json
import sys

from app.logging_config import setup_logging
from app.service_layer.errors import RunFailed
from app.service_layer.use_cases.run_workflow import run_workflow

DEFAULT_QUERY = "maison à vendre Laval 3 chambres"


async def main() -> int:
    setup_logging()
    query = " ".join(sys.argv[1:]) or DEFAULT_QUERY
    try:
        outcome = await run_workflow(query)
    except RunFailed as e:
        print(json.dumps({"error": str(e)}, ensure_ascii=False))
        return 1

    print("state:", outcome.state)
    if outcome.result is not None:
        print("tool calls:", outcome.result.tool_calls)
    print(json.dumps(outcome.payload.get("output_parsed", outcome.payload), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
