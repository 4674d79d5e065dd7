# app/service_layer/orchestrator.py
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from ..adapters.clients.openai_planner import Planner, PlannerTurn, build_instructions
from ..domain.types import CanonicalListing, RunState
from ..schemas import ListingsBatch
from .errors import RunUndefined, SchemaViolation
from .tools import NORMALIZE, TOOL_SPECS, RunLimits, ToolBox

log = logging.getLogger(__name__)


@dataclass
class OrchestratorResult:
    state: RunState
    listings: list[CanonicalListing] = field(default_factory=list)
    turns: int = 0
    tool_calls: dict[str, int] = field(default_factory=dict)
    reason: str | None = None

    def as_batch(self) -> dict[str, Any]:
        return {"listings": [it.as_dict() for it in self.listings]}


def validate_batch(listings: list[CanonicalListing]) -> ListingsBatch:
    try:
        return ListingsBatch.model_validate({"listings": [it.as_dict() for it in listings]})
    except ValidationError as e:
        raise SchemaViolation(f"listings failed schema validation: {e.error_count()} error(s)") from e


class Orchestrator:
    """
    Drives the planner turn by turn and holds it to the run's budget.

      idle -> searching -> fetching -> extracting -> normalizing -> done
      any point with not enough observed data         -> empty_result

    The planner proposes; only tool output that can be traced to a fetched
    page ever reaches the result.
    """

    def __init__(self, planner: Planner, toolbox: ToolBox, limits: RunLimits | None = None) -> None:
        self.planner = planner
        self.toolbox = toolbox
        self.limits = limits or toolbox.limits
        self.turns = 0

    def _initial_messages(self, query: str) -> list[dict[str, Any]]:
        instructions = build_instructions(
            max_search=self.limits.max_search_calls,
            max_results=self.limits.max_search_results,
            max_fetch=self.limits.max_fetch_calls,
            max_normalize=self.limits.max_normalize_calls,
        )
        return [
            {"role": "system", "content": instructions},
            {"role": "user", "content": query},
        ]

    async def _next_turn(self, messages: list[dict[str, Any]]) -> PlannerTurn | None:
        try:
            return await asyncio.wait_for(
                self.planner.next_turn(messages, TOOL_SPECS),
                timeout=float(self.limits.planner_timeout_s),
            )
        except asyncio.TimeoutError:
            log.warning("planner timed out after %.1fs", self.limits.planner_timeout_s)
            return None

    async def run(self, query: str) -> OrchestratorResult:
        messages = self._initial_messages(query)

        while self.turns < int(self.limits.max_turns):
            self.turns += 1
            turn = await self._next_turn(messages)
            if turn is None:
                return self._empty("planner_timeout")

            if turn.tool_calls:
                messages.append(turn.assistant_message())
                for call in turn.tool_calls:
                    result = await self.toolbox.call(call.name, call.arguments)
                    if self.toolbox.finished:
                        return self._finish()
                    messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": call.id,
                            "content": json.dumps(result, ensure_ascii=False),
                        }
                    )
                continue

            if not (turn.content or "").strip():
                raise RunUndefined()

            # planner is done talking; run the single normalization pass if it never asked for it
            if self.toolbox.budget.take(NORMALIZE):
                self.toolbox.run_normalization([])
                return self._finish()
            return self._empty("normalize_budget_exhausted")

        log.info("turn ceiling reached (%d) without a result", self.limits.max_turns)
        return self._empty("max_turns")

    def _finish(self) -> OrchestratorResult:
        listings = list(self.toolbox.normalized or [])
        validate_batch(listings)
        if not listings:
            return self._empty("no_observed_listings")
        self.toolbox.state = RunState.done
        return OrchestratorResult(
            state=RunState.done,
            listings=listings,
            turns=self.turns,
            tool_calls=self.toolbox.budget.snapshot(),
        )

    def _empty(self, reason: str) -> OrchestratorResult:
        self.toolbox.state = RunState.empty_result
        return OrchestratorResult(
            state=RunState.empty_result,
            listings=[],
            turns=self.turns,
            tool_calls=self.toolbox.budget.snapshot(),
            reason=reason,
        )
