"""Tests for core/coordinator.py — the refresh state machine."""

import datetime

import pytest

from backend.client import BackendError, RateLimitedError
from core.coordinator import RefreshState, RefreshStatus, UpdateCoordinator
from core.catalog import CatalogStore
from core.errors import Busy, Cooldown, RateLimited, UpdateFailed
from core.models import PriceQuote

from conftest import T0, FakeBackend, update_response

NEXT = T0 + datetime.timedelta(minutes=5)

RESULTS = [
    {"store": "A", "price": 1000, "url": "https://a.example", "success": True},
    {"store": "B", "price": 1200, "url": "https://b.example", "success": True},
]


# ── Success path ─────────────────────────────────────────

def test_refresh_applies_prices_and_cooldown(coordinator, catalog, registry, backend):
    backend.update_responses["1"] = update_response(RESULTS, NEXT)

    outcome = coordinator.refresh("1")

    assert outcome.status is RefreshStatus.APPLIED
    assert outcome.ok
    assert outcome.error is None
    assert [(q.store, q.price) for q in catalog.get("1").prices] == [("A", 1000), ("B", 1200)]
    assert catalog.get("1").last_update == T0
    assert registry.get("1") == NEXT
    assert coordinator.state is RefreshState.IDLE


def test_refresh_defaults_to_selection(coordinator, catalog, backend):
    catalog.select("3")
    backend.default_update = update_response(RESULTS, NEXT)

    outcome = coordinator.refresh()

    assert outcome.item_id == "3"
    assert backend.update_calls == ["3"]
    assert catalog.selected.prices[0].store == "A"


def test_refresh_without_selection_is_noop(registry, clock):
    backend = FakeBackend(games=[])
    catalog = CatalogStore(backend)
    catalog.fetch_all()
    coord = UpdateCoordinator(catalog, registry, backend, clock)

    outcome = coord.refresh()

    assert outcome.status is RefreshStatus.NO_SELECTION
    assert backend.update_calls == []


def test_failed_store_results_are_dropped(coordinator, catalog, backend):
    results = RESULTS + [
        {"store": "C", "price": 0, "url": "", "success": False},
        {"store": "D", "success": False, "error": "timeout"},
    ]
    backend.update_responses["2"] = update_response(results, NEXT)

    coordinator.refresh("2")

    assert [q.store for q in catalog.get("2").prices] == ["A", "B"]


def test_only_literal_true_success_counts(coordinator, catalog, backend):
    results = RESULTS + [
        {"store": "C", "price": 900, "url": "", "success": "false"},
        {"store": "D", "price": 800, "url": "", "success": 1},
    ]
    backend.update_responses["2"] = update_response(results, NEXT)

    outcome = coordinator.refresh("2")

    assert outcome.ok
    assert [q.store for q in catalog.get("2").prices] == ["A", "B"]


def test_previous_quotes_are_replaced_wholesale(coordinator, catalog, backend):
    assert catalog.get("2").prices[0].store == "weplay"
    backend.update_responses["2"] = update_response(RESULTS[:1], NEXT)

    coordinator.refresh("2")

    assert catalog.get("2").prices == [PriceQuote("A", 1000, "https://a.example")]


# ── Cooldown gate ────────────────────────────────────────

def test_second_refresh_hits_local_cooldown(coordinator, clock, backend):
    backend.update_responses["1"] = update_response(RESULTS, NEXT)
    coordinator.refresh("1")

    clock.advance(60)
    outcome = coordinator.refresh("1")

    assert outcome.status is RefreshStatus.COOLDOWN
    assert isinstance(outcome.error, Cooldown)
    assert outcome.error.remaining == datetime.timedelta(minutes=4)
    assert "4 minutes" in outcome.message
    assert backend.update_calls == ["1"]
    assert coordinator.state is RefreshState.IDLE


def test_cooldown_does_not_block_other_games(coordinator, backend):
    backend.default_update = update_response(RESULTS, NEXT)
    coordinator.refresh("1")
    outcome = coordinator.refresh("2")
    assert outcome.ok
    assert backend.update_calls == ["1", "2"]


def test_refresh_allowed_once_cooldown_elapses(coordinator, clock, backend):
    backend.default_update = update_response(RESULTS, NEXT)
    coordinator.refresh("1")

    clock.set(NEXT)
    backend.default_update = update_response(RESULTS, NEXT + datetime.timedelta(minutes=5))
    outcome = coordinator.refresh("1")

    assert outcome.ok
    assert len(backend.update_calls) == 2


def test_cooldown_message_rounds_up_minutes(coordinator, registry):
    registry.set("1", T0 + datetime.timedelta(seconds=61))
    outcome = coordinator.refresh("1")
    assert "2 minutes" in outcome.message


# ── Single flight ────────────────────────────────────────

def test_refresh_while_in_flight_is_busy(coordinator, backend):
    inner = {}

    def respond(game_id):
        # a second refresh starts while the first is still waiting on the backend
        inner["outcome"] = coordinator.refresh("2")
        inner["state"] = coordinator.state
        return update_response(RESULTS, NEXT)

    backend.update_responses["1"] = respond

    outer = coordinator.refresh("1")

    assert inner["state"] is RefreshState.REQUESTING
    assert inner["outcome"].status is RefreshStatus.BUSY
    assert isinstance(inner["outcome"].error, Busy)
    assert outer.ok
    assert backend.update_calls == ["1"]
    assert coordinator.state is RefreshState.IDLE
    assert not coordinator.busy


def test_selection_change_during_flight(coordinator, catalog, backend):
    def respond(game_id):
        catalog.select("3")
        return update_response(RESULTS, NEXT)

    backend.update_responses["1"] = respond
    outcome = coordinator.refresh("1")

    assert outcome.ok
    assert catalog.selected_id == "3"
    assert catalog.get("1").prices[0].store == "A"
    assert catalog.get("3").prices == []


# ── Server rate limit ────────────────────────────────────

def test_rate_limited_sets_server_cooldown(coordinator, catalog, registry, backend):
    before = list(catalog.get("2").prices)
    backend.update_responses["2"] = RateLimitedError("wait", NEXT)

    outcome = coordinator.refresh("2")

    assert outcome.status is RefreshStatus.REJECTED
    assert isinstance(outcome.error, RateLimited)
    assert outcome.message == "wait"
    assert outcome.error.next_available == NEXT
    assert catalog.get("2").prices == before
    assert registry.get("2") == NEXT
    assert coordinator.last_error_message == "wait"
    assert coordinator.state is RefreshState.IDLE


def test_rate_limited_overrides_local_state(coordinator, registry, clock, backend):
    # local cooldown already elapsed (e.g. stale after a restart) but server disagrees
    registry.set("1", T0 - datetime.timedelta(seconds=1))
    backend.update_responses["1"] = RateLimitedError("slow down", NEXT)

    coordinator.refresh("1")
    outcome = coordinator.refresh("1")

    assert outcome.status is RefreshStatus.COOLDOWN
    assert backend.update_calls == ["1"]


# ── Generic failure ──────────────────────────────────────

def test_failure_leaves_registry_untouched(coordinator, catalog, registry, backend):
    before = list(catalog.get("2").prices)
    backend.update_responses["2"] = BackendError("HTTP 500", status_code=500)

    outcome = coordinator.refresh("2")

    assert outcome.status is RefreshStatus.FAILED
    assert isinstance(outcome.error, UpdateFailed)
    assert outcome.message == "Error updating prices"
    assert "2" not in registry
    assert catalog.get("2").prices == before
    assert coordinator.state is RefreshState.IDLE


def test_failure_can_be_retried_immediately(coordinator, backend):
    backend.update_responses["1"] = BackendError("connection reset")
    coordinator.refresh("1")

    backend.update_responses["1"] = update_response(RESULTS, NEXT)
    outcome = coordinator.refresh("1")

    assert outcome.ok
    assert backend.update_calls == ["1", "1"]


def test_unexpected_exception_is_contained(coordinator, registry, backend):
    backend.update_responses["1"] = RuntimeError("bug in transport")
    outcome = coordinator.refresh("1")
    assert outcome.status is RefreshStatus.FAILED
    assert len(registry) == 0
    assert not coordinator.busy


def test_malformed_quote_is_failure(coordinator, catalog, registry, backend):
    bad = [{"store": "A", "price": "not a number", "url": "", "success": True}]
    backend.update_responses["1"] = update_response(bad, NEXT)

    outcome = coordinator.refresh("1")

    assert outcome.status is RefreshStatus.FAILED
    assert catalog.get("1").prices == []
    assert "1" not in registry


@pytest.mark.parametrize("price", [float("inf"), float("nan"), 10**400])
def test_unrepresentable_price_is_failure(coordinator, catalog, registry, backend, price):
    before = list(catalog.get("2").prices)
    bad = [{"store": "A", "price": price, "url": "", "success": True}] + RESULTS[1:]
    backend.update_responses["2"] = update_response(bad, NEXT)

    outcome = coordinator.refresh("2")

    assert outcome.status is RefreshStatus.FAILED
    assert catalog.get("2").prices == before
    assert "2" not in registry
    assert not coordinator.busy


def test_update_for_unknown_game_is_failure(coordinator, registry, backend):
    backend.update_responses["99"] = update_response(RESULTS, NEXT)
    outcome = coordinator.refresh("99")
    assert outcome.status is RefreshStatus.FAILED
    assert "99" not in registry


def test_error_banner_cleared_by_next_attempt(coordinator, backend):
    backend.update_responses["1"] = BackendError("down")
    coordinator.refresh("1")
    assert coordinator.last_error_message == "Error updating prices"

    backend.update_responses["1"] = update_response(RESULTS, NEXT)
    coordinator.refresh("1")
    assert coordinator.last_error_message is None
    assert coordinator.last_outcome.ok
