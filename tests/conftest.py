"""Shared fixtures: a manual clock, a fake backend and a fake requests session."""

import copy
import datetime
import os

import pytest
import pytz

# Keep test runs from writing log files into the working tree
os.environ.setdefault("LOG_TO_FILE", "false")

from backend.client import UpdateResponse
from core.catalog import CatalogStore
from core.clock import ManualClock
from core.cooldowns import CooldownRegistry
from core.coordinator import UpdateCoordinator

T0 = datetime.datetime(2024, 1, 1, 12, 0, 0, tzinfo=pytz.UTC)

GAMES = [
    {
        "id": 1,
        "name": "Astro Bot",
        "platform": "PS5",
        "image": "https://img.example/astro.jpg",
        "prices": [],
    },
    {
        "id": 2,
        "name": "Ghost of Tsushima",
        "platform": "PS4",
        "image": "https://img.example/ghost.jpg",
        "prices": [
            {"store": "weplay", "price": 24990, "url": "https://weplay.example/ghost"},
        ],
    },
    {
        "id": 3,
        "name": "Gran Turismo 7",
        "platform": "PS5",
        "image": "https://img.example/gt7.jpg",
    },
]


def iso(dt: datetime.datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


# ── Fakes ────────────────────────────────────────────────

class FakeBackend:
    """
    Stand-in for BackendClient. `update_responses` maps a game id to an
    UpdateResponse, an exception instance to raise, or a callable taking the
    id and returning either.
    """

    def __init__(self, games=None):
        self.games = copy.deepcopy(GAMES if games is None else games)
        self.list_calls = 0
        self.list_error = None
        self.update_calls = []
        self.update_responses = {}
        self.default_update = None

    def list_games(self):
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return copy.deepcopy(self.games)

    def update_game(self, game_id):
        self.update_calls.append(game_id)
        resp = self.update_responses.get(game_id, self.default_update)
        if callable(resp):
            resp = resp(game_id)
        if isinstance(resp, Exception):
            raise resp
        if resp is None:
            raise AssertionError(f"no update response configured for {game_id}")
        return resp


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None, url="http://backend.test"):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.url = url

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Records requests and replays queued responses (or raises queued errors)."""

    def __init__(self, *responses):
        self.headers = {}
        self.calls = []
        self._responses = list(responses)

    def queue(self, response):
        self._responses.append(response)

    def request(self, method, url, timeout=None):
        self.calls.append((method, url, timeout))
        resp = self._responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        resp.url = url
        return resp


def update_response(results, next_available):
    return UpdateResponse(results=results, next_update_available=next_available)


# ── Fixtures ─────────────────────────────────────────────

@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def registry():
    return CooldownRegistry()


@pytest.fixture
def catalog(backend):
    store = CatalogStore(backend)
    store.fetch_all()
    return store


@pytest.fixture
def coordinator(catalog, registry, backend, clock):
    return UpdateCoordinator(catalog, registry, backend, clock)
