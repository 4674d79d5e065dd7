# tests/test_api.py
import httpx
import pytest
from sqlalchemy import select

from app.adapters.clients.guardrails import StaticGuardrail
from app.adapters.clients.http_resilience import ResilientHttp
from app.adapters.clients.openai_planner import PlannerTurn, ToolCall
from app.config import settings
from app.db import get_session
from app.entrypoints.api.deps import get_workflow_deps
from app.entrypoints.fastapi_app import create_app
from app.models import WorkflowRun, WorkflowRunStatus
from app.service_layer.tools import FETCH
from app.service_layer.use_cases.run_workflow import WorkflowDeps


@pytest.fixture
def deps_for(limits, fake_search, fake_fetcher):
    def make(planner, guard=None):
        return WorkflowDeps(
            guardrail_factory=lambda: guard or StaticGuardrail(),
            planner_factory=lambda: planner,
            http_factory=ResilientHttp,
            search_factory=lambda http: fake_search,
            fetcher_factory=lambda http: fake_fetcher,
            limits=limits,
        )

    return make


@pytest.fixture
def app(async_session_maker):
    app = create_app()

    async def _session():
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    return app


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def _runs(async_session_maker):
    async with async_session_maker() as session:
        return list((await session.execute(select(WorkflowRun).order_by(WorkflowRun.id))).scalars().all())


@pytest.mark.asyncio
async def test_root_and_health(client):
    r = await client.get("/")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "service": "ListingFinder"}

    r = await client.get("/health")
    assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_run_workflow_returns_listings_and_records_run(app, client, deps_for, scripted_planner, urls, async_session_maker):
    planner = scripted_planner([PlannerTurn(tool_calls=[ToolCall(id="c1", name=FETCH, arguments={"url": urls.a})])])
    app.dependency_overrides[get_workflow_deps] = lambda: deps_for(planner)

    r = await client.post("/runWorkflow", json={"input_as_text": "maison Laval"})

    assert r.status_code == 200
    body = r.json()
    assert set(body) == {"output_text", "output_parsed"}
    assert [it["mls"] for it in body["output_parsed"]["listings"]] == ["12345678"]

    [run] = await _runs(async_session_maker)
    assert run.status == WorkflowRunStatus.success
    assert run.final_state == "done"
    assert run.listings_count == 1
    assert run.query == "maison Laval"
    assert run.finished_at is not None


@pytest.mark.asyncio
async def test_blocked_run_is_a_200_with_failures(app, client, deps_for, scripted_planner, fake_search, async_session_maker):
    planner = scripted_planner([])
    app.dependency_overrides[get_workflow_deps] = lambda: deps_for(planner, StaticGuardrail(tripwire=True, name="Moderation"))

    r = await client.post("/runWorkflow", json={"input_as_text": "texte interdit"})

    assert r.status_code == 200
    assert r.json() == {"blocked": True, "failures": [{"guardrail_name": "Moderation", "flagged": True}]}
    assert planner.seen == []
    assert fake_search.calls == []

    [run] = await _runs(async_session_maker)
    assert run.status == WorkflowRunStatus.blocked


@pytest.mark.asyncio
async def test_empty_result_is_a_200_with_no_listings(app, client, deps_for, scripted_planner, async_session_maker):
    app.dependency_overrides[get_workflow_deps] = lambda: deps_for(scripted_planner([]))

    r = await client.post("/runWorkflow", json={"input_as_text": "maison"})

    assert r.status_code == 200
    assert r.json()["output_parsed"] == {"listings": []}
    [run] = await _runs(async_session_maker)
    assert run.status == WorkflowRunStatus.empty
    assert run.final_state == "empty_result"


@pytest.mark.asyncio
async def test_undefined_result_is_a_500(app, client, deps_for, scripted_planner, async_session_maker):
    app.dependency_overrides[get_workflow_deps] = lambda: deps_for(scripted_planner([PlannerTurn(content="")]))

    r = await client.post("/runWorkflow", json={"input_as_text": "maison"})

    assert r.status_code == 500
    assert r.json() == {"error": "Agent result is undefined"}
    [run] = await _runs(async_session_maker)
    assert run.status == WorkflowRunStatus.failed
    assert run.error == "Agent result is undefined"


@pytest.mark.asyncio
async def test_unexpected_error_is_a_500(app, client, deps_for, async_session_maker):
    class BrokenPlanner:
        async def next_turn(self, messages, tools):
            raise KeyError("choices")

    app.dependency_overrides[get_workflow_deps] = lambda: deps_for(BrokenPlanner())

    r = await client.post("/runWorkflow", json={"input_as_text": "maison"})

    assert r.status_code == 500
    assert "choices" in r.json()["error"]
    [run] = await _runs(async_session_maker)
    assert run.status == WorkflowRunStatus.failed


@pytest.mark.asyncio
async def test_missing_input_is_rejected(client):
    r = await client.post("/runWorkflow", json={})
    assert r.status_code == 422

    r = await client.post("/runWorkflow", json={"input_as_text": ""})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_latest_runs_requires_key_when_configured(app, client, deps_for, scripted_planner, monkeypatch):
    app.dependency_overrides[get_workflow_deps] = lambda: deps_for(scripted_planner([]))
    await client.post("/runWorkflow", json={"input_as_text": "premier"})
    await client.post("/runWorkflow", json={"input_as_text": "second"})

    monkeypatch.setattr(settings, "API_KEY", "secret")

    r = await client.get("/runs/latest")
    assert r.status_code == 401

    r = await client.get("/runs/latest", params={"limit": 1}, headers={"X-API-Key": "secret"})
    assert r.status_code == 200
    [latest] = r.json()
    assert latest["query"] == "second"
    assert latest["status"] == "empty"
    assert latest["tool_calls"]["normalizeAndDedupeListings"] == 1


@pytest.mark.asyncio
async def test_debug_config_hides_secrets(client, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", None)
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-should-not-leak")

    r = await client.get("/debug/config")

    assert r.status_code == 200
    body = r.json()
    assert body["OPENAI_API_KEY_SET"] is True
    assert body["MAX_FETCH_CALLS"] == settings.MAX_FETCH_CALLS
    assert "sk-should-not-leak" not in r.text
