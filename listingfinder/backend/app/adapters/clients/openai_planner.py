# app/adapters/clients/openai_planner.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from openai import AsyncOpenAI

from ...config import settings

log = logging.getLogger(__name__)

INSTRUCTIONS = """You are "Listings Finder", a bilingual (FR first, then EN) real-estate assistant for Québec.
Find 5-12 current properties matching the user's criteria using the tools, in this order:
1. searchRealEstateListings once (at most {max_results} URLs).
2. fetchHtmlPage on up to {max_fetch} of those URLs.
3. extractListingInfo on each fetched URL.
4. normalizeAndDedupeListings once, passing one entry per fetched URL. You may add the
   address, property type and a one-line note_fr / note_en, but only with facts you read
   in the fetched pages. Never guess an MLS number, price or address.
If MLS isn't visible, use "MLS non trouvé / MLS not found".
Tool budget: {max_search} search, {max_fetch} fetches, {max_normalize} normalization. If the
data is not there, finish with no listings rather than inventing them."""


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any]


@dataclass(frozen=True)
class PlannerTurn:
    tool_calls: list[ToolCall] = field(default_factory=list)
    content: str | None = None

    def assistant_message(self) -> dict[str, Any]:
        msg: dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            msg["tool_calls"] = [
                {
                    "id": c.id,
                    "type": "function",
                    "function": {"name": c.name, "arguments": json.dumps(c.arguments, ensure_ascii=False)},
                }
                for c in self.tool_calls
            ]
        return msg


class Planner(Protocol):
    """Decides the next step. Opaque: the orchestrator only trusts what it can check."""

    async def next_turn(self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> PlannerTurn:
        ...


def _parse_arguments(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        log.warning("planner sent non-JSON tool arguments: %.200s", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


@dataclass
class OpenAIPlanner:
    client: AsyncOpenAI
    model: str = settings.OPENAI_MODEL

    @classmethod
    def from_settings(cls) -> "OpenAIPlanner | NullPlanner":
        if not settings.OPENAI_API_KEY:
            log.warning("OPENAI_API_KEY is not set; planner disabled, runs will return no listings")
            return NullPlanner()
        client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.OPENAI_TIMEOUT_S)
        return cls(client=client, model=settings.OPENAI_MODEL)

    async def next_turn(self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> PlannerTurn:
        request_args: dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            request_args["tools"] = tools
            request_args["tool_choice"] = "auto"

        resp = await self.client.chat.completions.create(**request_args)
        msg = resp.choices[0].message
        calls = [
            ToolCall(id=c.id, name=c.function.name, arguments=_parse_arguments(c.function.arguments))
            for c in (msg.tool_calls or [])
            if getattr(c, "function", None) is not None
        ]
        return PlannerTurn(tool_calls=calls, content=msg.content)


@dataclass
class NullPlanner:
    """Stands in when no model is configured: finishes at once with no tool use."""

    async def next_turn(self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> PlannerTurn:
        return PlannerTurn(content="planner disabled")


def build_instructions(
    *,
    max_search: int = settings.MAX_SEARCH_CALLS,
    max_results: int = settings.MAX_SEARCH_RESULTS,
    max_fetch: int = settings.MAX_FETCH_CALLS,
    max_normalize: int = settings.MAX_NORMALIZE_CALLS,
) -> str:
    return INSTRUCTIONS.format(
        max_search=max_search,
        max_results=max_results,
        max_fetch=max_fetch,
        max_normalize=max_normalize,
    )
