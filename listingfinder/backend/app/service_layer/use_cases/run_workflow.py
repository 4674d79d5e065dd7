# app/service_layer/use_cases/run_workflow.py
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from ...adapters.clients.guardrails import (
    GuardrailCheck,
    GuardrailProvider,
    ModerationGuardrail,
    StaticGuardrail,
    build_guardrail_fail_output,
    guardrails_has_tripwire,
)
from ...adapters.clients.http_resilience import ResilientHttp
from ...adapters.clients.openai_planner import OpenAIPlanner, Planner
from ...adapters.clients.page_fetcher import PageFetchClient
from ...adapters.clients.serpapi_search import SerpApiSearchClient
from ...config import settings
from ..orchestrator import Orchestrator, OrchestratorResult
from ..tools import PageFetchProvider, RunLimits, SearchProvider, ToolBox

log = logging.getLogger(__name__)


def _default_guardrail() -> GuardrailProvider:
    if not settings.GUARDRAILS_ENABLED:
        return StaticGuardrail(tripwire=False, name="Disabled")
    return ModerationGuardrail.from_settings()


@dataclass
class WorkflowDeps:
    """
    Factories, not instances: every run builds its own clients, budget and
    caches from these, so two concurrent requests never share state.
    """

    guardrail_factory: Callable[[], GuardrailProvider] = _default_guardrail
    planner_factory: Callable[[], Planner] = OpenAIPlanner.from_settings
    http_factory: Callable[[], ResilientHttp] = ResilientHttp.from_settings
    search_factory: Callable[[ResilientHttp], SearchProvider] = SerpApiSearchClient.from_settings
    fetcher_factory: Callable[[ResilientHttp], PageFetchProvider] = PageFetchClient.from_settings
    limits: RunLimits = field(default_factory=RunLimits.from_settings)

    @classmethod
    def from_settings(cls) -> "WorkflowDeps":
        return cls()


@dataclass
class WorkflowOutcome:
    blocked: bool
    payload: dict[str, Any]
    result: OrchestratorResult | None = None
    guardrail_results: list[GuardrailCheck] = field(default_factory=list)

    @property
    def state(self) -> str:
        if self.blocked:
            return "blocked"
        assert self.result is not None
        return self.result.state.value


async def _run_guardrails(guard: GuardrailProvider, text: str, timeout_s: float) -> list[GuardrailCheck]:
    try:
        return await asyncio.wait_for(guard.check(text), timeout=timeout_s)
    except asyncio.TimeoutError:
        log.warning("guardrail check timed out; allowing request")
        return []


def listings_payload(result: OrchestratorResult) -> dict[str, Any]:
    batch = result.as_batch()
    return {
        "output_text": json.dumps(batch, ensure_ascii=False),
        "output_parsed": batch,
    }


async def run_workflow(input_as_text: str, deps: WorkflowDeps | None = None) -> WorkflowOutcome:
    """
    Guardrail gate, then one bounded orchestration run.

    Returns either the listings payload (possibly with no listings) or the
    blocked payload. RunFailed subclasses propagate to the caller.
    """
    deps = deps or WorkflowDeps.from_settings()
    limits = deps.limits

    guard_results = await _run_guardrails(deps.guardrail_factory(), input_as_text, limits.tool_timeout_s)
    if guardrails_has_tripwire(guard_results):
        log.info("guardrail tripwire; run blocked before any tool call")
        return WorkflowOutcome(
            blocked=True,
            payload=build_guardrail_fail_output(guard_results),
            guardrail_results=guard_results,
        )

    async with deps.http_factory() as http:
        toolbox = ToolBox(
            limits=limits,
            search_provider=deps.search_factory(http),
            fetcher=deps.fetcher_factory(http),
        )
        orchestrator = Orchestrator(deps.planner_factory(), toolbox, limits)
        result = await orchestrator.run(input_as_text)

    log.info(
        "run finished state=%s listings=%d turns=%d calls=%s",
        result.state.value,
        len(result.listings),
        result.turns,
        result.tool_calls,
    )
    return WorkflowOutcome(
        blocked=False,
        payload=listings_payload(result),
        result=result,
        guardrail_results=guard_results,
    )
