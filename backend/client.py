# backend/client.py
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List

import requests

from core.clock import parse_timestamp
from core.logger import get_logger

logger = get_logger(__name__)

API_URL = os.getenv("API_URL", "http://localhost:3001").strip()
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "15"))
USER_AGENT = os.getenv("USER_AGENT", "cotizaciones-play/1.0")


class BackendError(Exception):
    """The backend could not be reached or answered with something unusable."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class RateLimitedError(BackendError):
    """HTTP 429 from the update endpoint, with the server's retry instant."""

    def __init__(self, message: str, next_available: datetime):
        self.server_message = message
        self.next_available = next_available
        super().__init__(message, status_code=429)


@dataclass
class UpdateResponse:
    results: List[Dict[str, Any]]
    next_update_available: datetime


class BackendClient:
    """
    Talks to the price backend:

        GET  /api/games               -> catalog
        POST /api/games/{id}/update   -> scrape fresh prices for one game

    No retries are made here; a failed call is reported once and the user
    decides whether to try again.
    """

    def __init__(
        self,
        base_url: str = API_URL,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.base_url = (base_url or API_URL).rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str) -> requests.Response:
        url = self._url(path)
        logger.debug("%s %s", method, url)
        try:
            return self._session.request(method, url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Backend request %s %s failed: %s", method, url, e)
            raise BackendError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _json(resp: requests.Response) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError as e:
            raise BackendError(
                f"Invalid JSON from {resp.url}", status_code=resp.status_code
            ) from e
        if not isinstance(body, dict):
            raise BackendError(
                f"Unexpected payload from {resp.url}: {type(body).__name__}",
                status_code=resp.status_code,
            )
        return body

    def list_games(self) -> List[Dict[str, Any]]:
        resp = self._request("GET", "/api/games")
        if not resp.ok:
            logger.error("Listing games returned HTTP %s", resp.status_code)
            raise BackendError(
                f"GET /api/games returned {resp.status_code}",
                status_code=resp.status_code,
            )

        body = self._json(resp)
        data = body.get("data")
        if not body.get("success", True) or not isinstance(data, list):
            raise BackendError("GET /api/games returned an unsuccessful payload")

        logger.info("Backend listed %d games", len(data))
        return data

    def update_game(self, game_id: str) -> UpdateResponse:
        path = f"/api/games/{game_id}/update"
        resp = self._request("POST", path)

        if resp.status_code == 429:
            body = self._json(resp)
            message = str(body.get("error") or "")
            try:
                next_available = parse_timestamp(body.get("nextUpdateAvailable"))
            except ValueError as e:
                raise BackendError(
                    f"429 without a usable nextUpdateAvailable: {e}",
                    status_code=429,
                ) from e
            logger.warning(
                "Backend rate limited game %s until %s: %s",
                game_id, next_available, message,
            )
            raise RateLimitedError(message, next_available)

        if not resp.ok:
            logger.error("Updating game %s returned HTTP %s", game_id, resp.status_code)
            raise BackendError(
                f"POST {path} returned {resp.status_code}",
                status_code=resp.status_code,
            )

        body = self._json(resp)
        if not body.get("success"):
            raise BackendError(f"POST {path} reported success=false")

        data = body.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise BackendError(f"POST {path} returned no results")

        try:
            next_available = parse_timestamp(data.get("nextUpdateAvailable"))
        except ValueError as e:
            raise BackendError(f"POST {path}: {e}") from e

        results = [r for r in data["results"] if isinstance(r, dict)]
        logger.info(
            "Backend returned %d store results for game %s", len(results), game_id
        )
        return UpdateResponse(results=results, next_update_available=next_available)
