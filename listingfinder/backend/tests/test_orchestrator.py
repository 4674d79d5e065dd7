# tests/test_orchestrator.py
import asyncio
import json
from dataclasses import replace

import pytest

from app.adapters.clients.openai_planner import PlannerTurn, ToolCall
from app.domain.types import MLS_NOT_FOUND, RunState
from app.service_layer.errors import RunUndefined
from app.service_layer.orchestrator import Orchestrator
from app.service_layer.tools import EXTRACT, FETCH, NORMALIZE, SEARCH


def _turn(*calls):
    return PlannerTurn(
        tool_calls=[ToolCall(id=f"call_{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)]
    )


def _tool_messages(messages):
    return [json.loads(m["content"]) for m in messages if m["role"] == "tool"]


@pytest.mark.asyncio
async def test_full_run_returns_grounded_listings_in_fetch_order(toolbox, scripted_planner, urls):
    planner = scripted_planner(
        [
            _turn((SEARCH, {"q": "maison à vendre Laval"})),
            _turn((FETCH, {"url": urls.a}), (FETCH, {"url": urls.b}), (FETCH, {"url": urls.c})),
            _turn((EXTRACT, {"url": urls.a}), (EXTRACT, {"url": urls.b}), (EXTRACT, {"url": urls.c})),
            _turn(
                (
                    NORMALIZE,
                    {
                        "listings": [
                            {"url": urls.a, "address": "123 rue Principale, Laval", "note_fr": "Bungalow", "note_en": "Bungalow"},
                            {"url": urls.b, "mls": "FAKE999", "price": 999999, "address": "1 rue Inventée"},
                        ]
                    },
                )
            ),
        ]
    )

    result = await Orchestrator(planner, toolbox).run("maison à vendre Laval")

    assert result.state == RunState.done
    assert result.turns == 4
    assert [it.url for it in result.listings] == [urls.a, urls.b, urls.c]
    assert [it.mls for it in result.listings] == ["12345678", "X9876543", MLS_NOT_FOUND]
    assert [it.price for it in result.listings] == [450000, 729000, 389900]
    assert result.listings[0].address == "123 rue Principale, Laval"
    assert result.listings[0].note_fr == "Bungalow"
    assert result.listings[1].address is None
    assert result.tool_calls == {SEARCH: 1, FETCH: 3, EXTRACT: 3, NORMALIZE: 1, "refused": 0}


@pytest.mark.asyncio
async def test_prompt_carries_budget_and_query(toolbox, scripted_planner):
    planner = scripted_planner([])
    await Orchestrator(planner, toolbox).run("condo Montréal 2 chambres")

    system, user = planner.seen[0][:2]
    assert system["role"] == "system"
    assert "MLS non trouvé / MLS not found" in system["content"]
    assert "3 fetches" in system["content"]
    assert user == {"role": "user", "content": "condo Montréal 2 chambres"}


@pytest.mark.asyncio
async def test_over_budget_calls_are_refused_and_reported(toolbox, scripted_planner, fake_fetcher, urls):
    planner = scripted_planner(
        [
            _turn((SEARCH, {"q": "maison"}), (SEARCH, {"q": "encore"})),
            _turn(*[(FETCH, {"url": u}) for u in (urls.a, urls.b, urls.c, urls.dead)]),
        ]
    )

    result = await Orchestrator(planner, toolbox).run("maison")

    assert fake_fetcher.calls == [urls.a, urls.b, urls.c]
    assert result.tool_calls[SEARCH] == 1
    assert result.tool_calls[FETCH] == 3
    assert result.tool_calls["refused"] == 2
    assert {"error": "budget_exhausted", "tool": FETCH} in _tool_messages(planner.seen[-1])
    # planner stopped talking without normalizing; the single pass still runs
    assert result.state == RunState.done
    assert result.tool_calls[NORMALIZE] == 1
    assert len(result.listings) == 3


@pytest.mark.asyncio
async def test_calls_after_normalization_are_not_executed(toolbox, scripted_planner, fake_fetcher, urls):
    planner = scripted_planner(
        [
            _turn((FETCH, {"url": urls.a})),
            _turn((NORMALIZE, {"listings": []}), (FETCH, {"url": urls.b})),
        ]
    )

    result = await Orchestrator(planner, toolbox).run("maison")

    assert fake_fetcher.calls == [urls.a]
    assert [it.mls for it in result.listings] == ["12345678"]
    assert result.turns == 2


@pytest.mark.asyncio
async def test_turn_ceiling_ends_with_empty_result(toolbox, scripted_planner):
    planner = scripted_planner([_turn((SEARCH, {"q": f"essai {i}"})) for i in range(10)])

    result = await Orchestrator(planner, toolbox).run("maison")

    assert result.state == RunState.empty_result
    assert result.reason == "max_turns"
    assert result.turns == 6
    assert result.listings == []
    assert len(planner.seen) == 6


@pytest.mark.asyncio
async def test_nothing_observed_gives_empty_result(toolbox, scripted_planner, urls):
    planner = scripted_planner(
        [
            _turn((FETCH, {"url": urls.dead})),
            _turn((NORMALIZE, {"listings": [{"url": urls.dead, "mls": "123", "price": 450000, "address": "1 rue X"}]})),
        ]
    )

    result = await Orchestrator(planner, toolbox).run("maison")

    assert result.state == RunState.empty_result
    assert result.reason == "no_observed_listings"
    assert result.as_batch() == {"listings": []}


@pytest.mark.asyncio
async def test_planner_that_says_nothing_is_undefined(toolbox, scripted_planner):
    planner = scripted_planner([PlannerTurn(content="   ")])

    with pytest.raises(RunUndefined, match="Agent result is undefined"):
        await Orchestrator(planner, toolbox).run("maison")


@pytest.mark.asyncio
async def test_planner_timeout_gives_empty_result(toolbox, limits):
    class StuckPlanner:
        async def next_turn(self, messages, tools):
            await asyncio.sleep(1)

    result = await Orchestrator(StuckPlanner(), toolbox, replace(limits, planner_timeout_s=0.01)).run("maison")

    assert result.state == RunState.empty_result
    assert result.reason == "planner_timeout"
