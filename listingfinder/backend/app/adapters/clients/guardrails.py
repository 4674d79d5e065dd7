# app/adapters/clients/guardrails.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from openai import AsyncOpenAI, OpenAIError

from ...config import settings

log = logging.getLogger(__name__)

# Moderation categories that stop a run (names as the moderation API reports them).
BLOCKING_CATEGORIES: tuple[str, ...] = ("sexual/minors", "hate/threatening", "violence/graphic")


@dataclass(frozen=True)
class GuardrailCheck:
    name: str
    tripwire_triggered: bool = False
    info: dict[str, Any] = field(default_factory=dict)


class GuardrailProvider(Protocol):
    async def check(self, text: str) -> list[GuardrailCheck]:
        ...


def guardrails_has_tripwire(results: Sequence[GuardrailCheck] | None) -> bool:
    return any(r.tripwire_triggered for r in (results or []))


def build_guardrail_fail_output(results: Sequence[GuardrailCheck] | None) -> dict[str, Any]:
    failures = []
    for r in results or []:
        if not r.tripwire_triggered:
            continue
        failure: dict[str, Any] = {"guardrail_name": r.name}
        for key in ("flagged", "categories", "category_scores"):
            if key in r.info:
                failure[key] = r.info[key]
        failures.append(failure)
    return {"blocked": True, "failures": failures}


@dataclass
class ModerationGuardrail:
    """
    OpenAI moderation as a pre-check. Fails open: no key, or an API error,
    lets the request through with a warning.
    """

    client: AsyncOpenAI | None
    model: str = settings.MODERATION_MODEL
    categories: tuple[str, ...] = BLOCKING_CATEGORIES

    @classmethod
    def from_settings(cls) -> "ModerationGuardrail":
        client = None
        if settings.OPENAI_API_KEY:
            client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.OPENAI_TIMEOUT_S)
        return cls(client=client, model=settings.MODERATION_MODEL)

    async def check(self, text: str) -> list[GuardrailCheck]:
        if self.client is None:
            log.warning("OPENAI_API_KEY is not set; moderation guardrail skipped")
            return []
        try:
            resp = await self.client.moderations.create(model=self.model, input=text)
        except OpenAIError as e:
            log.warning("moderation failed open; allowing request: %s", e)
            return []

        result = resp.results[0]
        flagged_categories = {k: bool(v) for k, v in result.categories.model_dump(by_alias=True).items()}
        hits = sorted(c for c in self.categories if flagged_categories.get(c))
        info = {
            "flagged": bool(result.flagged),
            "categories": hits,
            "category_scores": {
                c: s
                for c, s in result.category_scores.model_dump(by_alias=True).items()
                if c in self.categories
            },
        }
        return [GuardrailCheck(name="Moderation", tripwire_triggered=bool(hits), info=info)]


@dataclass
class StaticGuardrail:
    """Fixed verdict; used when guardrails are disabled and in tests."""

    tripwire: bool = False
    name: str = "Static"
    calls: list[str] = field(default_factory=list)

    async def check(self, text: str) -> list[GuardrailCheck]:
        self.calls.append(text)
        return [GuardrailCheck(name=self.name, tripwire_triggered=self.tripwire, info={"flagged": self.tripwire})]
