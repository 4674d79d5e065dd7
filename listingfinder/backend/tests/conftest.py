# tests/conftest.py
import os
from types import SimpleNamespace

# Before any app import: keep tests off the dev database and off the network.
os.environ.setdefault("LISTINGS_DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ["OPENAI_API_KEY"] = ""
os.environ["SERPAPI_KEY"] = ""

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.adapters.clients.openai_planner import PlannerTurn
from app.adapters.clients.page_fetcher import FetchedPage
from app.models import Base
from app.service_layer.tools import RunLimits, ToolBox

URL_A = "https://www.centris.ca/fr/maison~a-vendre~laval/12345678"
URL_B = "https://www.realtor.ca/real-estate/9876543/condo-montreal"
URL_C = "https://duproprio.com/fr/quebec-rive-nord/maison-a-vendre-1001"
URL_DEAD = "https://www.royallepage.ca/fr/property/quebec/1"

PAGE_A = """<html><head><title>Maison à vendre, Laval</title>
<script type="application/ld+json">{"@type": "House", "bedrooms": 3, "bathrooms": 2}</script>
<style>.price { font-weight: bold; }</style></head>
<body>
<h1>Maison à vendre</h1>
<p class="address">123 rue Principale, Laval</p>
<p class="price">$450,000</p>
<p>No Centris / MLS® 12345678</p>
<!-- tracking pixel -->
</body></html>"""

PAGE_B = """<html><body>
<h1>Condo for sale</h1>
<div>4500 boul. Saint-Laurent, Montréal</div>
<span>$ 729 000</span>
<ul><li>4 beds</li><li>2.5 baths</li></ul>
<p>MLS®: X9876543</p>
</body></html>"""

PAGE_C = """<html><body>
<h1>Maison à vendre par le propriétaire</h1>
<p>Prix demandé : $389,900</p>
<p>2 beds</p>
</body></html>"""

PAGES = {URL_A: PAGE_A, URL_B: PAGE_B, URL_C: PAGE_C}


class FakeSearch:
    def __init__(self, urls):
        self.urls = list(urls)
        self.calls = []

    async def search(self, q, num=10):
        self.calls.append((q, num))
        return self.urls[:num]


class FakeFetcher:
    def __init__(self, pages):
        self.pages = dict(pages)
        self.calls = []

    async def fetch(self, url):
        self.calls.append(url)
        return FetchedPage(url=url, html=self.pages.get(url, ""))


class ScriptedPlanner:
    """Plays back planner turns in order, then says it is done."""

    def __init__(self, turns):
        self.turns = list(turns)
        self.seen = []

    async def next_turn(self, messages, tools):
        self.seen.append(list(messages))
        if not self.turns:
            return PlannerTurn(content="Terminé / Done")
        return self.turns.pop(0)


@pytest.fixture
def limits():
    return RunLimits(
        max_turns=6,
        max_search_calls=1,
        max_search_results=3,
        max_fetch_calls=3,
        max_normalize_calls=1,
        listing_cap=12,
        html_max_chars=2000,
        tool_timeout_s=5.0,
        planner_timeout_s=5.0,
    )


@pytest.fixture
def urls():
    return SimpleNamespace(a=URL_A, b=URL_B, c=URL_C, dead=URL_DEAD)


@pytest.fixture
def pages():
    return dict(PAGES)


@pytest.fixture
def fake_search():
    return FakeSearch([URL_A, URL_B, URL_C, URL_DEAD])


@pytest.fixture
def fake_fetcher():
    return FakeFetcher(PAGES)


@pytest.fixture
def toolbox(limits, fake_search, fake_fetcher):
    return ToolBox(limits=limits, search_provider=fake_search, fetcher=fake_fetcher)


@pytest.fixture
def scripted_planner():
    return ScriptedPlanner


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def async_session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)
