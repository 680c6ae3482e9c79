# core/coordinator.py
"""
Refresh state machine for a single game's prices.

    IDLE -> REQUESTING -> APPLIED | REJECTED | FAILED -> IDLE

Only one refresh may be in flight at a time, for any game. A refresh for a
game that is still cooling down is turned away before any request is made.
The backend stays the authority on cooldowns: a 429 overwrites whatever the
local registry believed. Failures that say nothing about the cooldown
(network errors, bad payloads) leave the registry alone.
"""
import enum
import threading
from dataclasses import dataclass
from typing import Optional

from backend.client import BackendError, RateLimitedError

from .diff import diff_quotes, summarize_diff
from .errors import Busy, Cooldown, DashboardError, NotFoundError, RateLimited, UpdateFailed
from .logger import get_logger
from .models import Item, PriceQuote

logger = get_logger(__name__)


class RefreshState(enum.Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    APPLIED = "applied"
    REJECTED = "rejected"
    FAILED = "failed"


class RefreshStatus(enum.Enum):
    APPLIED = "applied"
    REJECTED = "rejected"      # server said 429
    FAILED = "failed"
    BUSY = "busy"
    COOLDOWN = "cooldown"      # refused locally, no request made
    NO_SELECTION = "no_selection"


@dataclass
class RefreshOutcome:
    status: RefreshStatus
    item_id: Optional[str] = None
    item: Optional[Item] = None
    error: Optional[DashboardError] = None

    @property
    def ok(self) -> bool:
        return self.status is RefreshStatus.APPLIED

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error else None


class UpdateCoordinator:
    def __init__(self, catalog, registry, backend, clock):
        self.catalog = catalog
        self.registry = registry
        self.backend = backend
        self.clock = clock
        self._state = RefreshState.IDLE
        self._state_lock = threading.Lock()
        self.last_outcome: Optional[RefreshOutcome] = None
        self.last_error_message: Optional[str] = None

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is not RefreshState.IDLE

    def refresh(self, item_id: Optional[str] = None) -> RefreshOutcome:
        """
        Refresh prices for `item_id` (the selected game by default).
        Never raises; the outcome says what happened.
        """
        if item_id is None:
            item_id = self.catalog.selected_id
            if item_id is None:
                return self._finish(RefreshOutcome(RefreshStatus.NO_SELECTION))
        item_id = str(item_id)

        with self._state_lock:
            if self._state is not RefreshState.IDLE:
                logger.info("Refresh of %s refused: another refresh is running", item_id)
                return self._finish(
                    RefreshOutcome(RefreshStatus.BUSY, item_id=item_id, error=Busy())
                )

            remaining = self.registry.remaining_time(item_id, self.clock.now())
            if remaining is not None:
                logger.info(
                    "Refresh of %s refused locally: %ds of cooldown left",
                    item_id, int(remaining.total_seconds()),
                )
                return self._finish(
                    RefreshOutcome(
                        RefreshStatus.COOLDOWN, item_id=item_id, error=Cooldown(remaining)
                    )
                )

            self._state = RefreshState.REQUESTING

        self.last_error_message = None
        try:
            outcome = self._request(item_id)
        finally:
            with self._state_lock:
                self._state = RefreshState.IDLE
        return self._finish(outcome)

    def _request(self, item_id: str) -> RefreshOutcome:
        logger.info("Requesting price update for game %s", item_id)
        try:
            response = self.backend.update_game(item_id)
        except RateLimitedError as e:
            self._state = RefreshState.REJECTED
            self.registry.set(item_id, e.next_available)
            return RefreshOutcome(
                RefreshStatus.REJECTED,
                item_id=item_id,
                error=RateLimited(e.server_message, e.next_available),
            )
        except BackendError as e:
            logger.error("Price update for game %s failed: %s", item_id, e)
            return self._failed(item_id)
        except Exception as e:
            logger.exception("Price update for game %s threw unexpected exception: %s", item_id, e)
            return self._failed(item_id)

        try:
            quotes = [
                PriceQuote.from_dict(r) for r in response.results if r.get("success") is True
            ]
        except (TypeError, ValueError, ArithmeticError) as e:
            logger.error("Malformed price results for game %s: %s", item_id, e)
            return self._failed(item_id)

        previous = self.catalog.get(item_id)
        old_prices = list(previous.prices) if previous is not None else []
        try:
            item = self.catalog.apply_update(item_id, quotes, self.clock.now())
        except NotFoundError:
            logger.error("Price update for unknown game %s discarded", item_id)
            return self._failed(item_id)

        self._state = RefreshState.APPLIED
        self.registry.set(item_id, response.next_update_available)

        dropped = len(response.results) - len(quotes)
        if dropped:
            logger.warning(
                "Game %s: %d store(s) failed to scrape and were skipped", item_id, dropped
            )
        logger.info(
            "Game %s updated: %s; next update at %s",
            item_id,
            summarize_diff(*diff_quotes(old_prices, quotes)),
            response.next_update_available,
        )
        return RefreshOutcome(RefreshStatus.APPLIED, item_id=item_id, item=item)

    def _failed(self, item_id: str) -> RefreshOutcome:
        self._state = RefreshState.FAILED
        return RefreshOutcome(RefreshStatus.FAILED, item_id=item_id, error=UpdateFailed())

    def _finish(self, outcome: RefreshOutcome) -> RefreshOutcome:
        self.last_outcome = outcome
        if outcome.error is not None:
            self.last_error_message = outcome.message
        elif outcome.ok:
            self.last_error_message = None
        return outcome
