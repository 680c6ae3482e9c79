# core/errors.py
"""
Errors surfaced to the dashboard user. Each carries a ready-to-display
message; the coordinator returns them inside a RefreshOutcome rather than
raising them.
"""
import datetime
import math


class DashboardError(Exception):
    """Base class for user-facing dashboard errors."""

    default_message = "Unexpected error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NetworkError(DashboardError):
    """The game list could not be loaded."""

    default_message = "Could not load games. Is the backend running?"


class NotFoundError(DashboardError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Unknown game id: {item_id}")


class Busy(DashboardError):
    default_message = "A price update is already running. Please wait."


class Cooldown(DashboardError):
    """Local rejection: the game was refreshed too recently."""

    def __init__(self, remaining: datetime.timedelta):
        self.remaining = remaining
        minutes = max(1, math.ceil(remaining.total_seconds() / 60))
        unit = "minute" if minutes == 1 else "minutes"
        super().__init__(
            f"This game is on cooldown. Wait {minutes} {unit}."
        )


class RateLimited(DashboardError):
    """The backend refused the update (HTTP 429) and said when to come back."""

    def __init__(self, server_message: str, next_available: datetime.datetime):
        self.server_message = server_message
        self.next_available = next_available
        super().__init__(server_message or "Too many update requests.")


class UpdateFailed(DashboardError):
    default_message = "Error updating prices"
